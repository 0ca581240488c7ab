"""
Repository pattern for persisted tracker state.

Maps the logical storage keys onto typed records. All reads tolerate missing
or corrupt data and return empty defaults.
"""

import logging
from datetime import datetime
from typing import List, Optional

from .kv import KeyValueStore, MemoryKeyValueStore
from .models import CostSource, Currency, NormalizedUsage, ProviderConfig

logger = logging.getLogger(__name__)

SOURCES_KEY = "cost-tracker:sources"
CONFIG_KEY = "cost-tracker:config"
USAGE_KEY = "cost-tracker:usage"
LAST_SYNC_KEY = "cost-tracker:last-sync"
PREFERENCES_KEY = "cost-tracker:preferences"
# Written by older clients as {"state": {"sources": [...], "defaultCurrency": ...}}
LEGACY_STORE_KEY = "cost-store"

DEFAULT_CURRENCY = Currency.USD


class CostTrackerRepository:
    """Typed access to the tracker's key-value storage.

    This class hides the storage key layout and JSON shapes from the store
    and the provider sync code.
    """

    def __init__(self, kv: Optional[KeyValueStore] = None):
        """Initialize the repository.

        Args:
            kv: Backing key-value store (defaults to an in-memory store)
        """
        self.kv = kv if kv is not None else MemoryKeyValueStore()

    # -- cost sources -------------------------------------------------

    def load_sources(self) -> List[CostSource]:
        """Load persisted cost sources, migrating the legacy key if needed.

        Records that cannot be parsed are skipped with a warning.
        """
        raw = self.kv.get_json(SOURCES_KEY)
        if raw is None:
            raw = self._migrate_legacy_store()
        if not isinstance(raw, list):
            if raw is not None:
                logger.warning("Ignoring non-list value under %s", SOURCES_KEY)
            return []

        sources = []
        for i, record in enumerate(raw):
            try:
                sources.append(CostSource.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid cost source at index %d: %s", i, e)
        return sources

    def save_sources(self, sources: List[CostSource]) -> bool:
        return self.kv.set_json(SOURCES_KEY, [s.to_dict() for s in sources])

    def _migrate_legacy_store(self) -> Optional[list]:
        legacy = self.kv.get_json(LEGACY_STORE_KEY)
        if not isinstance(legacy, dict):
            return None
        state = legacy.get("state", legacy)
        if not isinstance(state, dict):
            return None

        sources = state.get("sources") or []
        logger.info("Migrating %d cost sources from legacy key %s", len(sources), LEGACY_STORE_KEY)
        if not self.kv.set_json(SOURCES_KEY, sources):
            # Leave the legacy copy in place so nothing is lost
            return sources

        currency = state.get("defaultCurrency")
        if currency and self.kv.get_json(PREFERENCES_KEY) is None:
            self.kv.set_json(PREFERENCES_KEY, {"defaultCurrency": currency})
        self.kv.remove(LEGACY_STORE_KEY)
        return sources

    # -- preferences --------------------------------------------------

    def load_default_currency(self) -> Currency:
        prefs = self.kv.get_json(PREFERENCES_KEY, {})
        try:
            return Currency(prefs.get("defaultCurrency", DEFAULT_CURRENCY.value))
        except (AttributeError, ValueError):
            logger.warning("Invalid default currency in preferences, using %s", DEFAULT_CURRENCY.value)
            return DEFAULT_CURRENCY

    def save_default_currency(self, currency: Currency) -> bool:
        prefs = self.kv.get_json(PREFERENCES_KEY, {})
        if not isinstance(prefs, dict):
            prefs = {}
        prefs["defaultCurrency"] = currency.value
        return self.kv.set_json(PREFERENCES_KEY, prefs)

    # -- provider configs ---------------------------------------------

    def load_provider_configs(self) -> List[ProviderConfig]:
        raw = self.kv.get_json(CONFIG_KEY, [])
        configs = []
        for record in raw if isinstance(raw, list) else []:
            try:
                configs.append(ProviderConfig.from_dict(record))
            except (KeyError, TypeError) as e:
                logger.warning("Skipping invalid provider config: %s", e)
        return configs

    def save_provider_configs(self, configs: List[ProviderConfig]) -> bool:
        return self.kv.set_json(CONFIG_KEY, [c.to_dict() for c in configs])

    # -- usage cache --------------------------------------------------

    def load_usage(self) -> List[NormalizedUsage]:
        raw = self.kv.get_json(USAGE_KEY, [])
        usage = []
        for record in raw if isinstance(raw, list) else []:
            try:
                usage.append(NormalizedUsage.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid usage record: %s", e)
        return usage

    def save_usage(self, usage: List[NormalizedUsage]) -> bool:
        return self.kv.set_json(USAGE_KEY, [u.to_dict() for u in usage])

    def get_last_sync(self) -> Optional[datetime]:
        raw = self.kv.get_json(LAST_SYNC_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            logger.warning("Invalid last-sync timestamp: %r", raw)
            return None

    def set_last_sync(self, when: Optional[datetime] = None) -> bool:
        return self.kv.set_json(LAST_SYNC_KEY, (when or datetime.now()).isoformat())
