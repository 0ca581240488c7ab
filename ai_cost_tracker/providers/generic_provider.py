"""
Fallback adapter for providers without a known usage API.

It only verifies that the configured endpoint accepts the credentials and
reports success with no usage records.
"""

from typing import List, Tuple

import httpx

from .base import (
    HealthStatus,
    ProviderError,
    ProviderErrorCode,
    UsageParams,
    UsageProvider,
    UsageResult,
    status_error,
)
from ai_cost_tracker.storage.models import NormalizedUsage

NO_USAGE_API_MESSAGE = "Provider configuration is valid, but this provider has no usage API"


class GenericProvider(UsageProvider):
    name = "generic"
    display_name = "Generic endpoint"

    async def _ping(self) -> httpx.Response:
        if not self.base_url:
            raise ProviderError(ProviderErrorCode.CONNECTION_FAILED, "No base URL configured")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeouts.connection_test,
                transport=self._transport,
            ) as client:
                response = await client.get(self.base_url, headers=self._headers())
        except httpx.TimeoutException:
            raise ProviderError(ProviderErrorCode.TIMEOUT, "Request timed out")
        except httpx.RequestError as e:
            raise ProviderError(ProviderErrorCode.NETWORK_ERROR, f"Cannot reach provider API: {e}")

        error = status_error(response.status_code)
        if error:
            raise error
        return response

    async def _fetch_usage_records(self, params: UsageParams) -> List[NormalizedUsage]:
        await self._ping()
        return []

    async def fetch_usage(self, params: UsageParams) -> UsageResult:
        result = await super().fetch_usage(params)
        if result.success:
            result.message = NO_USAGE_API_MESSAGE
        return result

    async def _probe_health(self) -> Tuple[HealthStatus, str]:
        await self._ping()
        return HealthStatus.HEALTHY, "Endpoint reachable"
