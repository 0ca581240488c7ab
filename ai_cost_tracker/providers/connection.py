"""
Credential connection tests run before a provider config is saved.
"""

import asyncio
from typing import Optional

import httpx

from .base import ProviderErrorCode, ProviderValidationResult, status_error

CONNECTION_TEST_TIMEOUT = 10.0

DEFAULT_BASE_URLS = {
    "opencode": "https://api.opencode.ai/v1",
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com/v1",
    "minimax": "https://www.minimaxi.com",
}


def get_default_base_url(provider: str) -> str:
    return DEFAULT_BASE_URLS.get((provider or "").lower(), "")


async def check_provider_connection(
    provider: str,
    api_key: str,
    base_url: Optional[str] = None,
    timeout: float = CONNECTION_TEST_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderValidationResult:
    """GET ``<base>/health`` with the key as a bearer token.

    Never raises for network failures; the outcome is reported in the result.
    """
    base = (base_url or get_default_base_url(provider)).rstrip("/")
    if not base:
        return ProviderValidationResult(
            False,
            f"No base URL known for provider {provider!r}",
            ProviderErrorCode.CONNECTION_FAILED,
        )

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(
                f"{base}/health",
                headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            )
    except httpx.TimeoutException:
        return ProviderValidationResult(False, "Connection timed out", ProviderErrorCode.TIMEOUT)
    except httpx.RequestError:
        return ProviderValidationResult(False, "Cannot reach the server", ProviderErrorCode.NETWORK_ERROR)

    error = status_error(response.status_code)
    if error:
        return ProviderValidationResult(False, error.message, error.code)
    return ProviderValidationResult(True, "Connection succeeded")


async def mock_connection_test(should_succeed: bool, delay: float = 1.0) -> ProviderValidationResult:
    """Simulated connection test for offline use."""
    await asyncio.sleep(delay)
    if should_succeed:
        return ProviderValidationResult(True, "Connection succeeded (mock)")
    return ProviderValidationResult(False, "Connection failed (mock)", ProviderErrorCode.MOCK_ERROR)
