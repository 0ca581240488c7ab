"""
OpenAI usage adapter built on the official ``openai`` SDK.

Usage comes from the billing dashboard endpoint, which reports cost per day
and line item in cents but no token counts.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, List, Optional, Tuple

import httpx
import openai
from openai import AsyncOpenAI

from .base import HealthStatus, ProviderError, ProviderErrorCode, UsageParams, UsageProvider
from .normalize import normalize_usage_record
from ai_cost_tracker.core.pricing import ModelPricing
from ai_cost_tracker.storage.models import NormalizedUsage

logger = logging.getLogger(__name__)

BILLING_USAGE_PATH = "/dashboard/billing/usage"


def _provider_error(error: Exception) -> ProviderError:
    """Map an openai SDK exception onto a ProviderError."""
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ProviderError(ProviderErrorCode.UNAUTHORIZED, "Invalid API key")
    if isinstance(error, openai.RateLimitError):
        return ProviderError(ProviderErrorCode.RATE_LIMITED, "Rate limited, try again later")
    if isinstance(error, openai.APITimeoutError):
        return ProviderError(ProviderErrorCode.TIMEOUT, "Request timed out")
    if isinstance(error, openai.APIConnectionError):
        return ProviderError(ProviderErrorCode.NETWORK_ERROR, f"Network request failed: {error}")
    if isinstance(error, openai.APIStatusError):
        return ProviderError(ProviderErrorCode.CONNECTION_FAILED, f"API returned HTTP {error.status_code}")
    return ProviderError(ProviderErrorCode.CONNECTION_FAILED, str(error))


def _line_item_model_id(name: str) -> str:
    return name.strip().lower().replace(" ", "-")


class OpenAIProvider(UsageProvider):
    name = "openai"
    display_name = "OpenAI"
    default_base_url = "https://api.openai.com/v1"

    @asynccontextmanager
    async def _client(self, timeout: float) -> AsyncIterator[AsyncOpenAI]:
        http_client: Optional[httpx.AsyncClient] = None
        if self._transport is not None:
            http_client = httpx.AsyncClient(transport=self._transport)
        client: Optional[AsyncOpenAI] = None
        try:
            client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.base_url,
                timeout=timeout,
                max_retries=0,
                http_client=http_client,
            )
            yield client
        except openai.OpenAIError as e:
            raise _provider_error(e)
        finally:
            if client is not None:
                await client.close()
            elif http_client is not None:
                await http_client.aclose()

    async def _fetch_usage_records(self, params: UsageParams) -> List[NormalizedUsage]:
        async with self._client(self.timeouts.usage) as client:
            payload: Any = await client.get(
                BILLING_USAGE_PATH,
                cast_to=object,
                options={"params": {"start_date": params.start_date, "end_date": params.end_date}},
            )

        if payload.get("error"):
            raise ProviderError(ProviderErrorCode.CONNECTION_FAILED, payload["error"].get("message", "API error"))

        records = []
        for day in payload.get("daily_costs") or []:
            day_date = datetime.fromtimestamp(float(day["timestamp"]), tz=timezone.utc).date().isoformat()
            for item in day.get("line_items") or []:
                cents = float(item.get("cost") or 0)
                if cents <= 0:
                    continue
                records.append(normalize_usage_record(
                    {
                        "model_id": _line_item_model_id(item["name"]),
                        "model_name": item["name"],
                        "cost": cents / 100,
                    },
                    self.name,
                    default_date=day_date,
                ))

        if not records and payload.get("total_usage"):
            records.append(normalize_usage_record(
                {"model": "openai", "cost": float(payload["total_usage"]) / 100},
                self.name,
                default_date=params.end_date,
            ))
        return records

    async def fetch_models(self) -> List[ModelPricing]:
        """Priced models available to this key, or the built-in list on failure."""
        try:
            async with self._client(self.timeouts.health) as client:
                page = await client.models.list()
        except ProviderError as e:
            logger.warning("Could not list OpenAI models, using built-in prices: %s", e.message)
            return await super().fetch_models()

        available = {model.id for model in page.data}
        return [p for p in self.pricing.for_provider(self.name) if p.model_id in available]

    async def _probe_health(self) -> Tuple[HealthStatus, str]:
        async with self._client(self.timeouts.health) as client:
            await client.models.list()
        return HealthStatus.HEALTHY, "Service is healthy"
