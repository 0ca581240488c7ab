"""
MiniMax coding-plan adapter.

MiniMax only reports remaining quota, so usage is derived from
``total_quota - remain_quota`` and split into input/output tokens with a
fixed 40/60 ratio.
"""

from datetime import date
from typing import List, Tuple

from .base import HealthStatus, ProviderError, ProviderErrorCode, UsageParams, UsageProvider
from .normalize import normalize_usage_record
from ai_cost_tracker.storage.models import NormalizedUsage

REMAINS_PATH = "/v1/api/openplatform/coding_plan/remains"
INPUT_SHARE = 0.4
OUTPUT_SHARE = 0.6
COST_PER_QUOTA_UNIT = 0.001


class MinimaxProvider(UsageProvider):
    name = "minimax"
    display_name = "MiniMax"
    default_base_url = "https://www.minimaxi.com"

    async def _remains(self) -> dict:
        payload = await self._get_json(f"{self.base_url}{REMAINS_PATH}")
        base_resp = payload.get("base_resp") or {}
        if base_resp.get("status_code") != 0:
            raise ProviderError(
                ProviderErrorCode.CONNECTION_FAILED,
                base_resp.get("status_msg") or "MiniMax API call failed",
            )
        return payload.get("data") or {}

    async def _fetch_usage_records(self, params: UsageParams) -> List[NormalizedUsage]:
        data = await self._remains()
        used = max(0, int(data.get("total_quota", 0)) - int(data.get("remain_quota", 0)))
        return [
            normalize_usage_record(
                {
                    "model": "minimax-model",
                    "input_tokens": int(used * INPUT_SHARE),
                    "output_tokens": int(used * OUTPUT_SHARE),
                    "cost": used * COST_PER_QUOTA_UNIT,
                },
                self.name,
                default_date=date.today().isoformat(),
            )
        ]

    async def _probe_health(self) -> Tuple[HealthStatus, str]:
        await self._remains()
        return HealthStatus.HEALTHY, "Service is healthy"
