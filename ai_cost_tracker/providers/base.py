"""
Provider adapter interface and result types.

Adapters translate a vendor's usage/billing API into NormalizedUsage records.
Network failures are never raised to callers: every public coroutine returns
a result value carrying a ProviderErrorCode and a readable message.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from ai_cost_tracker.core.calculator import (
    UsageCostBreakdown,
    calculate_token_cost,
    summarize_usage_costs,
)
from ai_cost_tracker.core.pricing import DEFAULT_PRICING, ModelPricing, PricingTable
from ai_cost_tracker.core.validators import validate_api_key
from ai_cost_tracker.storage.models import NormalizedUsage, ProviderConfig

logger = logging.getLogger(__name__)


class ProviderErrorCode(Enum):
    """Machine-readable failure reasons for provider calls."""
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    TIMEOUT = "TIMEOUT"
    MOCK_ERROR = "MOCK_ERROR"
    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_API_KEY = "INVALID_API_KEY"


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ProviderError(Exception):
    """Raised inside adapters and converted to a result at the public boundary."""
    def __init__(self, code: ProviderErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class ProviderTimeouts:
    """Per-operation network timeouts in seconds."""
    usage: float = 15.0
    health: float = 5.0
    connection_test: float = 10.0


@dataclass(frozen=True)
class UsageParams:
    start_date: str
    end_date: str
    model_id: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass
class UsageResult:
    """Outcome of a usage fetch."""
    success: bool
    data: List[NormalizedUsage] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[ProviderErrorCode] = None
    message: Optional[str] = None

    @property
    def total_input_tokens(self) -> int:
        return sum(u.input_tokens for u in self.data)

    @property
    def total_output_tokens(self) -> int:
        return sum(u.output_tokens for u in self.data)

    @property
    def total_cost(self) -> float:
        return sum(u.cost for u in self.data)

    @classmethod
    def failure(cls, error: ProviderError) -> "UsageResult":
        return cls(success=False, error=error.message, error_code=error.code)


@dataclass(frozen=True)
class ProviderHealth:
    provider: str
    status: HealthStatus
    latency_ms: int
    message: str
    checked_at: datetime


@dataclass(frozen=True)
class ProviderValidationResult:
    is_valid: bool
    message: str
    error_code: Optional[ProviderErrorCode] = None


def status_error(status_code: int) -> Optional[ProviderError]:
    """Map a non-2xx HTTP status onto a ProviderError."""
    if status_code in (401, 403):
        return ProviderError(ProviderErrorCode.UNAUTHORIZED, "Invalid API key")
    if status_code == 429:
        return ProviderError(ProviderErrorCode.RATE_LIMITED, "Rate limited, try again later")
    if status_code >= 400:
        return ProviderError(ProviderErrorCode.CONNECTION_FAILED, f"API returned HTTP {status_code}")
    return None


class UsageProvider:
    """Base class for provider adapters.

    Subclasses implement ``_fetch_usage_records`` and may override
    ``fetch_models`` and ``health_check``.

    Args:
        config: Credentials and optional base URL
        timeouts: Network timeouts per operation
        transport: Optional httpx transport, used to stub the network in tests
        pricing: Rate card for token cost estimates
    """

    name = "base"
    display_name = "Base"
    version = "1.0.0"
    default_base_url = ""
    health_path = "/health"

    def __init__(
        self,
        config: ProviderConfig,
        timeouts: Optional[ProviderTimeouts] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        pricing: PricingTable = DEFAULT_PRICING,
    ):
        self.config = config
        self.timeouts = timeouts or ProviderTimeouts()
        self.pricing = pricing
        self._transport = transport

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.default_base_url).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    async def _get_json(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET a JSON document, mapping every failure onto ProviderError."""
        try:
            async with httpx.AsyncClient(
                timeout=timeout or self.timeouts.usage,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params, headers=self._headers())
        except httpx.TimeoutException:
            raise ProviderError(ProviderErrorCode.TIMEOUT, "Request timed out")
        except httpx.RequestError as e:
            raise ProviderError(ProviderErrorCode.NETWORK_ERROR, f"Network request failed: {e}")

        error = status_error(response.status_code)
        if error:
            raise error
        try:
            return response.json()
        except ValueError:
            raise ProviderError(ProviderErrorCode.CONNECTION_FAILED, "API returned invalid JSON")

    async def _fetch_usage_records(self, params: UsageParams) -> List[NormalizedUsage]:
        raise NotImplementedError

    async def fetch_usage(self, params: UsageParams) -> UsageResult:
        """Fetch normalized usage for a date range. Never raises for API failures."""
        try:
            records = await self._fetch_usage_records(params)
        except ProviderError as e:
            logger.warning("Usage fetch for %s failed (%s): %s", self.name, e.code.value, e.message)
            return UsageResult.failure(e)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Unexpected usage payload from %s: %s", self.name, e)
            return UsageResult.failure(
                ProviderError(ProviderErrorCode.CONNECTION_FAILED, f"Unexpected response format: {e}")
            )
        return UsageResult(success=True, data=records)

    async def fetch_models(self) -> List[ModelPricing]:
        return list(self.pricing.for_provider(self.name))

    async def fetch_costs(self, params: UsageParams) -> UsageCostBreakdown:
        result = await self.fetch_usage(params)
        return summarize_usage_costs(result.data)

    def calculate_cost(self, input_tokens: int, output_tokens: int, model_id: str) -> float:
        """Estimate token cost from the rate card; unknown models cost 0."""
        pricing = self.pricing.find(model_id)
        if pricing is None:
            return 0.0
        return calculate_token_cost(input_tokens, output_tokens, pricing)

    async def _probe_health(self) -> Tuple[HealthStatus, str]:
        """Perform the health request. Raises ProviderError when unreachable."""
        payload = await self._get_json(f"{self.base_url}{self.health_path}", timeout=self.timeouts.health)
        if isinstance(payload, dict) and payload.get("status") not in (None, "ok"):
            return HealthStatus.DEGRADED, "Service reported degraded status"
        return HealthStatus.HEALTHY, "Service is healthy"

    async def health_check(self) -> ProviderHealth:
        started = time.monotonic()
        try:
            status, message = await self._probe_health()
        except ProviderError as e:
            status, message = HealthStatus.UNHEALTHY, e.message
        return ProviderHealth(
            provider=self.name,
            status=status,
            latency_ms=int((time.monotonic() - started) * 1000),
            message=message,
            checked_at=datetime.now(),
        )

    async def validate_config(self) -> ProviderValidationResult:
        """Check the API key format, then confirm the service is reachable."""
        if not self.config.api_key:
            return ProviderValidationResult(False, "API key is required", ProviderErrorCode.MISSING_API_KEY)

        key_errors = validate_api_key(self.config.api_key, self.name)
        if key_errors:
            return ProviderValidationResult(False, "; ".join(key_errors), ProviderErrorCode.INVALID_API_KEY)

        health = await self.health_check()
        if health.status == HealthStatus.UNHEALTHY:
            return ProviderValidationResult(
                False,
                health.message or f"Cannot reach {self.display_name}",
                ProviderErrorCode.CONNECTION_FAILED,
            )
        return ProviderValidationResult(True, "Configuration is valid")
