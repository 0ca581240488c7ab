"""
Usage synchronisation across every configured provider.

Fetches run concurrently; one provider failing does not affect the others.
Successful records are persisted as the last-fetched usage cache.
"""

import asyncio
import logging
import time
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from .base import ProviderTimeouts, UsageParams, UsageResult
from .registry import ProviderRegistry
from ai_cost_tracker.storage.models import NormalizedUsage, ProviderConfig
from ai_cost_tracker.storage.repository import CostTrackerRepository

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60
DEFAULT_RANGE_DAYS = 30
FALLBACK_PROVIDER = "generic"


def default_date_range(today: Optional[date] = None, days: int = DEFAULT_RANGE_DAYS) -> Tuple[str, str]:
    """(start, end) ISO dates covering the last ``days`` days."""
    end = today or date.today()
    return (end - timedelta(days=days)).isoformat(), end.isoformat()


class UsageSync:
    """
    Args:
        registry: Provider adapters to build from
        repository: Where synced usage and the sync timestamp are saved
        timeouts: Network timeouts passed to each adapter
        transport: Optional httpx transport shared by all adapters
        cache_ttl: Seconds a successful fetch is reused for the same range
        clock: Monotonic time source
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        repository: Optional[CostTrackerRepository] = None,
        timeouts: Optional[ProviderTimeouts] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache_ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.repository = repository or CostTrackerRepository()
        self.timeouts = timeouts or ProviderTimeouts()
        self.transport = transport
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._cache: Dict[Tuple[str, str, str], Tuple[float, UsageResult]] = {}

    def cached_usage(self, provider: str, start_date: str, end_date: str) -> Optional[UsageResult]:
        entry = self._cache.get((provider, start_date, end_date))
        if entry is None:
            return None
        stored_at, result = entry
        if self._clock() - stored_at > self.cache_ttl:
            del self._cache[(provider, start_date, end_date)]
            return None
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    def _prune_cache(self, now: float) -> None:
        expired = [key for key, (stored_at, _) in self._cache.items() if now - stored_at > self.cache_ttl]
        for key in expired:
            del self._cache[key]

    async def fetch_provider_usage(self, config: ProviderConfig, start_date: str, end_date: str) -> UsageResult:
        """Fetch one provider's usage, using the cache when fresh.

        Providers without a registered adapter go through the generic one.
        """
        cached = self.cached_usage(config.provider, start_date, end_date)
        if cached is not None:
            logger.debug("Using cached usage for %s", config.provider)
            return cached

        if self.registry.has_provider(config.provider):
            adapter = self.registry.create(config, self.timeouts, self.transport)
        else:
            logger.info("No adapter for %r, using %s", config.provider, FALLBACK_PROVIDER)
            adapter = self.registry.get_info(FALLBACK_PROVIDER).provider_class(
                config, timeouts=self.timeouts, transport=self.transport
            )

        result = await adapter.fetch_usage(UsageParams(start_date=start_date, end_date=end_date))
        if result.success:
            now = self._clock()
            self._prune_cache(now)
            self._cache[(config.provider, start_date, end_date)] = (now, result)
        return result

    async def sync(
        self,
        configs: Iterable[ProviderConfig],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, UsageResult]:
        """Fetch usage from every enabled config concurrently.

        Returns a result per provider. When at least one fetch succeeds, the
        combined records replace the stored usage cache and the last-sync
        time is stamped.
        """
        if start_date is None or end_date is None:
            default_start, default_end = default_date_range()
            start_date = start_date or default_start
            end_date = end_date or default_end

        enabled = [c for c in configs if c.is_enabled]
        results = await asyncio.gather(
            *(self.fetch_provider_usage(c, start_date, end_date) for c in enabled)
        )
        by_provider = {config.provider: result for config, result in zip(enabled, results)}

        records: List[NormalizedUsage] = []
        for result in by_provider.values():
            if result.success:
                records.extend(result.data)

        if any(r.success for r in by_provider.values()):
            self.repository.save_usage(records)
            self.repository.set_last_sync()
        return by_provider
