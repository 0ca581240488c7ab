"""
Anthropic usage adapter.
"""

from datetime import date
from typing import Dict, List

from .base import UsageParams, UsageProvider
from .normalize import normalize_usage_record, normalize_usage_records
from ai_cost_tracker.storage.models import NormalizedUsage

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(UsageProvider):
    name = "anthropic"
    display_name = "Anthropic"
    default_base_url = "https://api.anthropic.com"
    health_path = "/v1/models"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    async def _fetch_usage_records(self, params: UsageParams) -> List[NormalizedUsage]:
        payload = await self._get_json(
            f"{self.base_url}/v1/usage",
            params={"start_date": params.start_date, "end_date": params.end_date},
        )

        # Newer responses list per-model rows; older ones return one aggregate
        if isinstance(payload.get("data"), list):
            return normalize_usage_records(payload["data"], self.name, default_date=params.end_date)

        usage = payload.get("usage") or {}
        return [
            normalize_usage_record(
                {
                    "model": usage.get("model", "claude-3"),
                    "input_tokens": usage.get("input_tokens", 0),
                    "output_tokens": usage.get("output_tokens", 0),
                    "cost": usage.get("total_cost", 0),
                },
                self.name,
                default_date=date.today().isoformat(),
            )
        ]
