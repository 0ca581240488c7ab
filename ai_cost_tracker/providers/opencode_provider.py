"""
OpenCode usage adapter.

OpenCode exposes per-day, per-model usage and a models endpoint with
per-million prices, so it maps almost directly onto NormalizedUsage.
"""

import logging
from typing import List

from .base import ProviderError, UsageParams, UsageProvider
from .normalize import normalize_usage_records
from ai_cost_tracker.core.pricing import ModelPricing
from ai_cost_tracker.storage.models import NormalizedUsage

logger = logging.getLogger(__name__)


class OpenCodeProvider(UsageProvider):
    name = "opencode"
    display_name = "OpenCode"
    default_base_url = "https://api.opencode.ai/v1"

    async def _fetch_usage_records(self, params: UsageParams) -> List[NormalizedUsage]:
        query = {"start_date": params.start_date, "end_date": params.end_date}
        if params.model_id:
            query["model_id"] = params.model_id
        if params.limit:
            query["limit"] = params.limit
        if params.offset:
            query["offset"] = params.offset

        payload = await self._get_json(f"{self.base_url}/usage", params=query)
        return normalize_usage_records(payload.get("data") or [], self.name)

    async def fetch_models(self) -> List[ModelPricing]:
        """List models with prices, falling back to the built-in rate card."""
        try:
            payload = await self._get_json(f"{self.base_url}/models")
        except ProviderError as e:
            logger.warning("Could not fetch OpenCode models, using built-in prices: %s", e.message)
            return await super().fetch_models()

        return [
            ModelPricing(
                model_id=item["id"],
                model_name=item.get("name") or item["id"],
                provider=self.name,
                input_price_per_million=float(item.get("input_price_per_million", 0)),
                output_price_per_million=float(item.get("output_price_per_million", 0)),
                currency=item.get("currency") or "USD",
            )
            for item in payload.get("data") or []
        ]
