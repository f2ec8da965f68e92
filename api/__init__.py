# API module - Protocol proxy client
# One request per call, no retries, secrets from the environment only

from .client import (
    APIConfig, APIResponse, APIStatus, ProtocolApiClient, ProxySymbolLookup, api_to_result
)

__all__ = [
    "APIConfig", "APIResponse", "APIStatus",
    "ProtocolApiClient", "ProxySymbolLookup", "api_to_result",
]
