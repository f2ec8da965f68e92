"""
Protocol API Client
-------------------
Network collaborator for command actions.
Calls the terminal's protocol proxy: {base_url}/api/{protocol}/{action}

Rules:
- One request per call, no retries
- Every HTTP outcome maps to an APIStatus; nothing is raised
- API keys come from the environment, never from command input
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, Optional
import logging
import os

import httpx

from core.results import CommandResult


class APIStatus(Enum):
    """Status of an API response."""
    SUCCESS = auto()
    BAD_REQUEST = auto()
    RATE_LIMITED = auto()
    AUTH_ERROR = auto()
    NOT_FOUND = auto()
    SERVER_ERROR = auto()
    TIMEOUT = auto()
    NETWORK_ERROR = auto()


@dataclass
class APIConfig:
    """Configuration for the proxy client."""
    base_url: str = "http://localhost:3000"
    timeout_seconds: float = 15.0
    api_key_env: Optional[str] = None  # Environment variable name (NOT the actual key)
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class APIResponse:
    """Response from an API call."""
    status: APIStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    status_code: int = 0
    response_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == APIStatus.SUCCESS


def _status_for(code: int) -> APIStatus:
    if 200 <= code < 300:
        return APIStatus.SUCCESS
    if code == 429:
        return APIStatus.RATE_LIMITED
    if code in (401, 403):
        return APIStatus.AUTH_ERROR
    if code == 404:
        return APIStatus.NOT_FOUND
    if 400 <= code < 500:
        return APIStatus.BAD_REQUEST
    return APIStatus.SERVER_ERROR


_DEFAULT_ERRORS = {
    APIStatus.RATE_LIMITED: "Rate limit exceeded",
    APIStatus.AUTH_ERROR: "Authentication failed",
    APIStatus.NOT_FOUND: "Resource not found",
    APIStatus.BAD_REQUEST: "Bad request",
}


class ProtocolApiClient:
    """
    HTTP client for the protocol proxy endpoints.

    Implements the NetworkCapability collaborator contract.
    """

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config or APIConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._logger = logging.getLogger("terminal.api")

        self._api_key = os.getenv(self.config.api_key_env) if self.config.api_key_env else None
        if self.config.api_key_env and not self._api_key:
            self._logger.warning(f"API key not found: {self.config.api_key_env}")

    def _get_headers(self) -> Dict[str, str]:
        """Build request headers with authentication."""
        headers = {
            "Accept": "application/json",
            "User-Agent": "DeFiTerminal/1.0",
        }
        headers.update(self.config.headers)

        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=self.config.timeout_seconds,
                headers=self._get_headers(),
                transport=self._transport,
            )
        return self._client

    def url_for(self, protocol: str, action: str) -> str:
        return f"/api/{protocol.strip('/')}/{action.strip('/')}"

    async def call(
        self,
        protocol: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "POST"
    ) -> APIResponse:
        """
        Call a proxied protocol endpoint.

        GET sends params as the query string, other methods as a JSON body.
        """
        path = self.url_for(protocol, action)
        method = method.upper()
        start_time = datetime.now()

        try:
            if method == "GET":
                response = await self._get_client().request(method, path, params=params)
            else:
                response = await self._get_client().request(method, path, json=params or {})
        except httpx.TimeoutException:
            self._logger.warning(f"{method} {path} timed out")
            return APIResponse(status=APIStatus.TIMEOUT, error="Request timed out")
        except httpx.HTTPError as e:
            self._logger.warning(f"{method} {path} failed: {e}")
            return APIResponse(status=APIStatus.NETWORK_ERROR, error=f"Network error: {e}")

        response_time = (datetime.now() - start_time).total_seconds() * 1000
        status = _status_for(response.status_code)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None

        self._logger.debug(
            f"{method} {path} -> {response.status_code} ({response_time:.0f}ms)"
        )

        if status == APIStatus.SUCCESS:
            return APIResponse(
                status=status,
                data=data,
                status_code=response.status_code,
                response_time_ms=response_time
            )

        # Proxy endpoints report failures as {"error": "..."}
        error = None
        if isinstance(data, dict):
            error = data.get("error") or data.get("message")
        if not error:
            error = _DEFAULT_ERRORS.get(status, f"Server error: {response.status_code}")

        return APIResponse(
            status=status,
            data=data,
            error=str(error),
            status_code=response.status_code,
            response_time_ms=response_time
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ProtocolApiClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


def api_to_result(response: APIResponse) -> CommandResult:
    """Convert an APIResponse into a CommandResult carrying its data."""
    if response.success:
        return CommandResult.ok(response.data)
    return CommandResult.fail(
        response.error or response.status.name,
        details={"status": response.status.name, "status_code": response.status_code},
    )


class ProxySymbolLookup:
    """
    SymbolLookup collaborator backed by the proxy's coin registry.

    Resolves a ticker symbol (BTC) to a coin id (btc-bitcoin). Results are
    cached for the lifetime of the object.
    """

    def __init__(self, client: ProtocolApiClient):
        self._client = client
        self._cache: Dict[str, Optional[str]] = {}

    async def resolve(self, symbol: str, chain_id: Optional[int] = None) -> Optional[str]:
        key = symbol.strip().lower()
        if key in self._cache:
            return self._cache[key]

        response = await self._client.call(
            "coinpaprika", "registry/resolve", {"symbol": key}, method="GET"
        )
        coin_id = None
        if response.success and isinstance(response.data, dict):
            coin_id = response.data.get("id")

        # Only cache definitive answers
        if response.success or response.status == APIStatus.NOT_FOUND:
            self._cache[key] = coin_id
        return coin_id
