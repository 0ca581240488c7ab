"""
Offline provider producing deterministic usage, for demos and tests.
"""

import random
from typing import List, Tuple

from .base import (
    HealthStatus,
    ProviderError,
    ProviderErrorCode,
    UsageParams,
    UsageProvider,
)
from ai_cost_tracker.core.pricing import ModelPricing
from ai_cost_tracker.core.utils import iter_days
from ai_cost_tracker.storage.models import NormalizedUsage

MOCK_MODELS = (
    ModelPricing("minimax-m2.1", "MiniMax-M2.1", "mock", 0.5, 1.5),
    ModelPricing("minimax-m2", "MiniMax-M2", "mock", 0.4, 1.2),
)


class MockProvider(UsageProvider):
    """Generates one record per model per day, seeded by date and model.

    Set ``fail = True`` to make every call fail with MOCK_ERROR.
    """

    name = "mock"
    display_name = "Mock"
    fail = False

    def _check(self) -> None:
        if self.fail:
            raise ProviderError(ProviderErrorCode.MOCK_ERROR, "Mock provider failure")

    async def _fetch_usage_records(self, params: UsageParams) -> List[NormalizedUsage]:
        self._check()
        records = []
        for day in iter_days(params.start_date, params.end_date):
            for model in MOCK_MODELS:
                if params.model_id and model.model_id != params.model_id:
                    continue
                rng = random.Random(f"{day}:{model.model_id}")
                input_tokens = rng.randint(1000, 11000)
                output_tokens = rng.randint(500, 5500)
                records.append(NormalizedUsage(
                    id=f"mock-{day}-{model.model_id}",
                    model_id=model.model_id,
                    model_name=model.model_name,
                    provider=self.name,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    cost=(input_tokens / 1_000_000) * model.input_price_per_million
                    + (output_tokens / 1_000_000) * model.output_price_per_million,
                    currency="USD",
                    date=day,
                ))
        return records

    async def fetch_models(self) -> List[ModelPricing]:
        return list(MOCK_MODELS)

    async def _probe_health(self) -> Tuple[HealthStatus, str]:
        self._check()
        return HealthStatus.HEALTHY, "Mock service is healthy"
