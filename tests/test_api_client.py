"""
API Client Tests
----------------
Tests for the proxy HTTP client on an in-process httpx transport.
"""

import asyncio
import json

import httpx
import pytest

from api.client import (
    APIConfig,
    APIResponse,
    APIStatus,
    ProtocolApiClient,
    ProxySymbolLookup,
    api_to_result,
)


def client_for(handler, **config):
    return ProtocolApiClient(
        APIConfig(base_url="https://proxy.test", **config),
        transport=httpx.MockTransport(handler),
    )


def call(client, *args, **kwargs):
    async def scenario():
        async with client:
            return await client.call(*args, **kwargs)
    return asyncio.run(scenario())


class TestCall:
    """Request shape and status mapping."""

    def test_get_sends_query(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["method"] = request.method
            return httpx.Response(200, json={"price": "1.0"})

        response = call(client_for(handler), "1inch", "gas", {"chainId": 1}, method="get")

        assert response.success
        assert response.data == {"price": "1.0"}
        assert seen == {"url": "https://proxy.test/api/1inch/gas?chainId=1", "method": "GET"}

    def test_post_sends_json(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["path"] = request.url.path
            return httpx.Response(200, json={"to": "0x1"})

        call(client_for(handler), "uniswap", "swap", {"amount": "1"})

        assert seen == {"body": {"amount": "1"}, "path": "/api/uniswap/swap"}

    @pytest.mark.parametrize("code,status", [
        (400, APIStatus.BAD_REQUEST),
        (401, APIStatus.AUTH_ERROR),
        (403, APIStatus.AUTH_ERROR),
        (404, APIStatus.NOT_FOUND),
        (429, APIStatus.RATE_LIMITED),
        (502, APIStatus.SERVER_ERROR),
    ])
    def test_status_mapping(self, code, status):
        response = call(client_for(lambda r: httpx.Response(code)), "1inch", "gas")

        assert response.status == status
        assert response.status_code == code
        assert response.error

    def test_error_body_used(self):
        def handler(request):
            return httpx.Response(400, json={"error": "Insufficient liquidity"})

        response = call(client_for(handler), "uniswap", "quote")
        assert response.error == "Insufficient liquidity"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        response = call(client_for(handler), "1inch", "gas")
        assert response.status == APIStatus.TIMEOUT

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        response = call(client_for(handler), "1inch", "gas")

        assert response.status == APIStatus.NETWORK_ERROR
        assert "refused" in response.error

    def test_non_json_body(self):
        response = call(client_for(lambda r: httpx.Response(200, text="ok")), "1inch", "gas")

        assert response.success
        assert response.data is None

    def test_api_key_header(self, monkeypatch):
        monkeypatch.setenv("TEST_PROXY_KEY", "secret")
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={})

        call(client_for(handler, api_key_env="TEST_PROXY_KEY"), "1inch", "gas")
        assert seen["auth"] == "Bearer secret"


class TestHelpers:
    def test_api_to_result(self):
        ok = api_to_result(APIResponse(status=APIStatus.SUCCESS, data={"a": 1}))
        failed = api_to_result(APIResponse(status=APIStatus.TIMEOUT, error="Request timed out"))

        assert ok.success and ok.value == {"a": 1}
        assert not failed.success
        assert failed.error.details["status"] == "TIMEOUT"

    def test_symbol_lookup_caches(self):
        requests = []

        def handler(request):
            requests.append(request.url.params["symbol"])
            if request.url.params["symbol"] == "btc":
                return httpx.Response(200, json={"id": "btc-bitcoin"})
            return httpx.Response(404, json={"error": "unknown"})

        client = client_for(handler)
        lookup = ProxySymbolLookup(client)

        async def scenario():
            async with client:
                return [
                    await lookup.resolve("BTC"),
                    await lookup.resolve("btc"),
                    await lookup.resolve("doge"),
                    await lookup.resolve("doge"),
                ]

        assert asyncio.run(scenario()) == ["btc-bitcoin", "btc-bitcoin", None, None]
        assert requests == ["btc", "doge"]

    def test_symbol_lookup_retries_after_server_error(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(500)

        client = client_for(handler)
        lookup = ProxySymbolLookup(client)

        async def scenario():
            async with client:
                await lookup.resolve("btc")
                await lookup.resolve("btc")

        asyncio.run(scenario())
        assert len(calls) == 2
