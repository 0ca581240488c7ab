"""
In-memory cost source collection with persistence and a cached summary.

The store is the only owner of the source list, the selection set, and the
summary. Every mutating call persists the full list once, recomputes the
summary from scratch, and then notifies subscribers.
"""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional, Set, Union

from ai_cost_tracker.core.calculator import DEFAULT_TREND_MONTHS, calculate_summary
from ai_cost_tracker.core.utils import generate_id
from ai_cost_tracker.storage.models import (
    BillingMode,
    CostSource,
    CostSummary,
    Currency,
    SourceType,
    coerce_source_fields,
    source_attribute,
)
from ai_cost_tracker.storage.repository import CostTrackerRepository, DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

DUPLICATE_SUFFIX = " (copy)"
_STAMPED_FIELDS = ("id", "created_at", "updated_at")

Listener = Callable[["CostSourceStore"], None]
SourceRecord = Union[CostSource, Mapping[str, Any]]


class CostSourceStore:
    """Authoritative collection of cost sources.

    Mutations are serialized by an internal lock so the summary always sees
    the collection as left by one complete operation. Listeners run after the
    lock is released.
    """

    def __init__(
        self,
        repository: Optional[CostTrackerRepository] = None,
        trend_months: int = DEFAULT_TREND_MONTHS,
        clock: Callable[[], datetime] = datetime.now,
        today: Optional[Callable[[], date]] = None,
    ):
        """Initialize the store and load persisted sources.

        Args:
            repository: Persistence backend (defaults to in-memory storage)
            trend_months: Length of the summary's monthly trend window
            clock: Source of timestamps for created_at/updated_at
            today: Source of the trend's reference date (defaults to today)
        """
        self.repository = repository or CostTrackerRepository()
        self.trend_months = trend_months
        self._clock = clock
        self._today = today or date.today
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        self._sources: List[CostSource] = self.repository.load_sources()
        self._selected: Set[str] = set()
        self._default_currency: Currency = self.repository.load_default_currency()
        self._summary: Optional[CostSummary] = None
        self.recalculate_summary()

    # -- read access --------------------------------------------------

    @property
    def sources(self) -> List[CostSource]:
        return list(self._sources)

    @property
    def selected_ids(self) -> Set[str]:
        return set(self._selected)

    @property
    def summary(self) -> Optional[CostSummary]:
        return self._summary

    @property
    def default_currency(self) -> Currency:
        return self._default_currency

    def get_source(self, source_id: str) -> Optional[CostSource]:
        for source in self._sources:
            if source.id == source_id:
                return source
        return None

    def get_enabled_sources(self) -> List[CostSource]:
        return [s for s in self._sources if s.is_enabled]

    def get_selected_sources(self) -> List[CostSource]:
        return [s for s in self._sources if s.id in self._selected]

    def filter_sources(
        self,
        type: Optional[SourceType] = None,
        billing_mode: Optional[BillingMode] = None,
        provider: Optional[str] = None,
        is_enabled: Optional[bool] = None,
    ) -> List[CostSource]:
        """Query sources without changing store state."""
        result = []
        for source in self._sources:
            if type is not None and source.type != type:
                continue
            if billing_mode is not None and source.billing_mode != billing_mode:
                continue
            if provider is not None and (source.provider or "") != provider:
                continue
            if is_enabled is not None and source.is_enabled != is_enabled:
                continue
            result.append(source)
        return result

    # -- observers ----------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every state change.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # -- CRUD ---------------------------------------------------------

    def _new_source(self, data: SourceRecord, now: datetime) -> CostSource:
        if isinstance(data, CostSource):
            fields = dict(vars(data))
        else:
            fields = coerce_source_fields(data)
        for key in _STAMPED_FIELDS:
            fields.pop(key, None)
        return CostSource(id=generate_id(), created_at=now, updated_at=now, **fields)

    def _commit(self) -> None:
        """Persist and recompute. Caller holds the lock and notifies after releasing it."""
        if not self.repository.save_sources(self._sources):
            logger.warning("Cost sources not persisted; continuing with in-memory state")
        self.recalculate_summary(notify=False)

    def add_source(self, data: SourceRecord) -> str:
        """Add a new cost source and return its generated id.

        Any id or timestamps in ``data`` are ignored.
        """
        with self._lock:
            source = self._new_source(data, self._clock())
            self._sources.append(source)
            logger.debug("Added cost source %s (%s)", source.id, source.name)
            self._commit()
        self._notify()
        return source.id

    def update_source(self, source_id: str, changes: Mapping[str, Any]) -> None:
        """Merge ``changes`` into a source and refresh its updated_at.

        Unknown ids are ignored; the store is still persisted and recomputed.

        Raises:
            ValueError: If ``changes`` names a field CostSource doesn't have
        """
        unknown = [key for key in changes if source_attribute(key) is None]
        if unknown:
            raise ValueError(f"Unknown cost source fields: {unknown}")
        fields = coerce_source_fields(changes)
        for key in _STAMPED_FIELDS:
            fields.pop(key, None)

        with self._lock:
            now = self._clock()
            self._sources = [
                replace(s, updated_at=now, **fields) if s.id == source_id else s
                for s in self._sources
            ]
            self._commit()
        self._notify()

    def delete_source(self, source_id: str) -> None:
        with self._lock:
            self._sources = [s for s in self._sources if s.id != source_id]
            self._selected.discard(source_id)
            logger.debug("Deleted cost source %s", source_id)
            self._commit()
        self._notify()

    def duplicate_source(self, source_id: str) -> Optional[str]:
        """Copy a source under a new id; the copy starts disabled.

        Returns:
            The new id, or None if ``source_id`` doesn't exist
        """
        source = self.get_source(source_id)
        if source is None:
            return None
        copy = replace(source, name=f"{source.name}{DUPLICATE_SUFFIX}", is_enabled=False)
        return self.add_source(copy)

    # -- selection ----------------------------------------------------

    def toggle_source_selection(self, source_id: str) -> None:
        with self._lock:
            if source_id in self._selected:
                self._selected.discard(source_id)
            else:
                self._selected.add(source_id)
        self._notify()

    def select_all(self) -> None:
        with self._lock:
            self._selected = {s.id for s in self._sources}
        self._notify()

    def deselect_all(self) -> None:
        with self._lock:
            self._selected = set()
        self._notify()

    def set_selected_sources(self, source_ids: Iterable[str]) -> None:
        with self._lock:
            self._selected = set(source_ids)
        self._notify()

    # -- bulk operations ----------------------------------------------

    def _bulk_replace(self, source_ids: Iterable[str], **fields: Any) -> None:
        targets = set(source_ids)
        with self._lock:
            now = self._clock()
            self._sources = [
                replace(s, updated_at=now, **fields) if s.id in targets else s
                for s in self._sources
            ]
            self._commit()
        self._notify()

    def bulk_update_billing_mode(self, source_ids: Iterable[str], mode: Union[BillingMode, str]) -> None:
        self._bulk_replace(source_ids, billing_mode=BillingMode(getattr(mode, "value", mode)))

    def bulk_enable(self, source_ids: Iterable[str]) -> None:
        self._bulk_replace(source_ids, is_enabled=True)

    def bulk_disable(self, source_ids: Iterable[str]) -> None:
        self._bulk_replace(source_ids, is_enabled=False)

    def bulk_delete(self, source_ids: Iterable[str]) -> None:
        targets = set(source_ids)
        with self._lock:
            self._sources = [s for s in self._sources if s.id not in targets]
            self._selected -= targets
            logger.debug("Bulk deleted %d cost sources", len(targets))
            self._commit()
        self._notify()

    # -- summary, import/export, settings -----------------------------

    def recalculate_summary(self, notify: bool = True) -> CostSummary:
        """Recompute the cached summary from the full collection."""
        with self._lock:
            self._summary = calculate_summary(
                self._sources, months=self.trend_months, today=self._today()
            )
            summary = self._summary
        if notify:
            self._notify()
        return summary

    def import_sources(self, records: Iterable[SourceRecord]) -> List[str]:
        """Append records as new sources with fresh ids and timestamps.

        Returns:
            The ids assigned to the imported sources
        """
        with self._lock:
            now = self._clock()
            imported = [self._new_source(record, now) for record in records]
            self._sources.extend(imported)
            logger.debug("Imported %d cost sources", len(imported))
            self._commit()
        self._notify()
        return [s.id for s in imported]

    def export_sources(self) -> List[CostSource]:
        return list(self._sources)

    def set_default_currency(self, currency: Union[Currency, str]) -> None:
        with self._lock:
            self._default_currency = currency if isinstance(currency, Currency) else Currency(currency)
            self.repository.save_default_currency(self._default_currency)
            self.recalculate_summary(notify=False)
        self._notify()

    def reset(self) -> None:
        """Clear sources, selection and summary, and persist the empty state."""
        with self._lock:
            self._sources = []
            self._selected = set()
            self._default_currency = DEFAULT_CURRENCY
            self._summary = None
            self.repository.save_sources(self._sources)
            self.repository.save_default_currency(self._default_currency)
        self._notify()
