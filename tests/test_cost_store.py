"""
Unit tests for the cost source store.

Tests CRUD, selection, bulk operations, persistence and subscriber
notification.
"""

import json
import threading
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from ai_cost_tracker.storage.kv import MemoryKeyValueStore
from ai_cost_tracker.storage.models import BillingMode, CostSource, Currency, SourceType
from ai_cost_tracker.storage.repository import SOURCES_KEY, CostTrackerRepository
from ai_cost_tracker.store.cost_store import DUPLICATE_SUFFIX, CostSourceStore


class FakeClock:
    """Deterministic, strictly increasing timestamps."""

    def __init__(self, start=datetime(2024, 6, 1, 12, 0)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def source_data(**overrides) -> dict:
    data = {
        "name": "OpenAI API",
        "type": "api",
        "provider": "openai",
        "billingMode": "monthly",
        "cost": 300,
        "currency": "USD",
    }
    data.update(overrides)
    return data


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return CostSourceStore(
        CostTrackerRepository(kv),
        clock=FakeClock(),
        today=lambda: date(2024, 6, 15),
    )


class TestCrud:
    """Test adding, updating, deleting and duplicating sources."""

    def test_add_source(self, store, kv):
        """New sources get an id and timestamps, are persisted and summarized."""
        source_id = store.add_source(source_data())

        source = store.get_source(source_id)
        assert source.name == "OpenAI API"
        assert source.billing_mode == BillingMode.MONTHLY
        assert source.created_at == source.updated_at
        assert json.loads(kv.get_item(SOURCES_KEY))[0]["id"] == source_id
        assert store.summary.total_daily_cost == 10.0

    def test_add_ignores_incoming_id_and_timestamps(self, store):
        source_id = store.add_source(source_data(id="mine", createdAt="2020-01-01T00:00:00"))
        assert source_id != "mine"
        assert store.get_source(source_id).created_at.year == 2024

    def test_ids_unique(self, store):
        ids = {store.add_source(source_data()) for _ in range(20)}
        assert len(ids) == 20

    def test_update_source(self, store):
        source_id = store.add_source(source_data())
        created = store.get_source(source_id)

        store.update_source(source_id, {"cost": 600, "billingMode": "monthly", "name": "Renamed"})

        updated = store.get_source(source_id)
        assert updated.cost == 600
        assert updated.name == "Renamed"
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at
        assert store.summary.total_daily_cost == 20.0

    def test_update_unknown_id_is_noop(self, store):
        store.add_source(source_data())
        listener = MagicMock()
        store.subscribe(listener)

        store.update_source("missing", {"cost": 1})

        assert store.summary.total_daily_cost == 10.0
        listener.assert_called_once_with(store)

    def test_update_unknown_field_raises(self, store):
        source_id = store.add_source(source_data())
        with pytest.raises(ValueError, match="Unknown cost source fields"):
            store.update_source(source_id, {"colour": "red"})

    def test_delete_source_clears_selection(self, store):
        source_id = store.add_source(source_data())
        store.toggle_source_selection(source_id)

        store.delete_source(source_id)

        assert store.get_source(source_id) is None
        assert store.selected_ids == set()
        assert store.summary.total_sources_count == 0

    def test_duplicate_source(self, store):
        """The copy gets a new id, starts disabled and keeps cost fields."""
        source_id = store.add_source(source_data(currency="EUR"))
        copy_id = store.duplicate_source(source_id)

        original = store.get_source(source_id)
        copy = store.get_source(copy_id)
        assert copy_id != source_id
        assert copy.is_enabled is False
        assert copy.name == original.name + DUPLICATE_SUFFIX
        assert (copy.cost, copy.billing_mode, copy.currency) == (300, BillingMode.MONTHLY, Currency.EUR)
        assert store.summary.enabled_sources_count == 1

    def test_duplicate_missing_returns_none(self, store):
        assert store.duplicate_source("missing") is None


class TestSelection:
    """Selection changes notify but never persist or recompute."""

    def test_toggle_and_select_all(self, store):
        a = store.add_source(source_data())
        b = store.add_source(source_data())

        store.toggle_source_selection(a)
        assert store.selected_ids == {a}
        store.toggle_source_selection(a)
        assert store.selected_ids == set()

        store.select_all()
        assert store.selected_ids == {a, b}
        assert {s.id for s in store.get_selected_sources()} == {a, b}

        store.deselect_all()
        assert store.selected_ids == set()

    def test_set_selected_sources(self, store):
        a = store.add_source(source_data())
        store.set_selected_sources([a])
        assert store.selected_ids == {a}

    def test_selection_does_not_persist(self, store):
        a = store.add_source(source_data())
        with patch.object(store.repository, "save_sources") as save:
            store.toggle_source_selection(a)
            store.select_all()
        save.assert_not_called()


class TestBulkOperations:
    """Each bulk call persists exactly once."""

    def test_bulk_update_billing_mode(self, store):
        ids = [store.add_source(source_data(cost=365)) for _ in range(3)]
        with patch.object(store.repository, "save_sources", wraps=store.repository.save_sources) as save:
            store.bulk_update_billing_mode(ids[:2], BillingMode.YEARLY)
        assert save.call_count == 1
        modes = [store.get_source(i).billing_mode for i in ids]
        assert modes == [BillingMode.YEARLY, BillingMode.YEARLY, BillingMode.MONTHLY]

    def test_bulk_update_accepts_string_mode(self, store):
        source_id = store.add_source(source_data())
        store.bulk_update_billing_mode([source_id], "daily")
        assert store.get_source(source_id).billing_mode == BillingMode.DAILY

    def test_bulk_enable_disable(self, store):
        ids = [store.add_source(source_data()) for _ in range(3)]
        store.bulk_disable(ids)
        assert store.summary.enabled_sources_count == 0
        store.bulk_enable(ids[:1])
        assert store.summary.enabled_sources_count == 1
        assert [s.id for s in store.get_enabled_sources()] == ids[:1]

    def test_bulk_delete(self, store):
        ids = [store.add_source(source_data()) for _ in range(3)]
        store.select_all()
        store.bulk_delete(ids[:2])
        assert [s.id for s in store.sources] == ids[2:]
        assert store.selected_ids == {ids[2]}


class TestQueries:
    def test_filter_sources(self, store):
        store.add_source(source_data(provider="openai"))
        store.add_source(source_data(provider="anthropic", type="subscription"))
        store.add_source(source_data(provider="openai", billingMode="yearly", isEnabled=False))

        assert len(store.filter_sources(provider="openai")) == 2
        assert len(store.filter_sources(type=SourceType.SUBSCRIPTION)) == 1
        assert len(store.filter_sources(billing_mode=BillingMode.YEARLY)) == 1
        assert len(store.filter_sources(provider="openai", is_enabled=True)) == 1


class TestPersistence:
    """Test loading, import/export, reset and storage failure handling."""

    def test_loads_persisted_sources(self, kv, store):
        source_id = store.add_source(source_data())
        reloaded = CostSourceStore(CostTrackerRepository(kv), today=lambda: date(2024, 6, 15))
        assert reloaded.get_source(source_id) is not None
        assert reloaded.summary.total_monthly_cost == 300.0

    def test_export_import_round_trip(self, store):
        """Imported copies keep field values but get fresh ids and timestamps."""
        store.add_source(source_data(startDate="2024-01-01", description="team plan"))
        store.add_source(source_data(billingMode="yearly", cost=1200, isEnabled=False))
        exported = [s.to_dict() for s in store.export_sources()]

        fresh = CostSourceStore(clock=FakeClock(datetime(2025, 1, 1)))
        new_ids = fresh.import_sources(exported)

        assert len(fresh.sources) == len(exported) == len(new_ids)
        for original, copy in zip(store.export_sources(), fresh.sources):
            assert copy.id != original.id
            assert copy.created_at != original.created_at
            assert (copy.name, copy.cost, copy.billing_mode, copy.start_date, copy.is_enabled,
                    copy.description) == (original.name, original.cost, original.billing_mode,
                                          original.start_date, original.is_enabled, original.description)

    def test_import_cost_source_objects(self, store):
        other = CostSourceStore()
        other.add_source(source_data())
        ids = store.import_sources(other.export_sources())
        assert len(ids) == 1
        assert ids[0] != other.sources[0].id

    def test_reset_persists_empty_state(self, kv, store):
        source_id = store.add_source(source_data())
        store.toggle_source_selection(source_id)
        store.set_default_currency("CNY")

        store.reset()

        assert store.sources == []
        assert store.selected_ids == set()
        assert store.summary is None
        assert store.default_currency == Currency.USD
        assert json.loads(kv.get_item(SOURCES_KEY)) == []

    def test_set_default_currency_persisted(self, kv, store):
        store.set_default_currency(Currency.EUR)
        assert CostSourceStore(CostTrackerRepository(kv)).default_currency == Currency.EUR

    def test_storage_failure_keeps_memory_state(self, store):
        """A failed write is logged and the in-memory state still updates."""
        with patch.object(store.repository, "save_sources", return_value=False):
            source_id = store.add_source(source_data())
        assert store.get_source(source_id) is not None
        assert store.summary.total_daily_cost == 10.0

    def test_recalculate_on_demand(self, store):
        store.add_source(source_data())
        summary = store.recalculate_summary()
        assert summary == store.summary


class TestSubscribers:
    def test_listener_called_after_mutation(self, store):
        seen = []
        store.subscribe(lambda s: seen.append(s.summary.total_daily_cost))
        store.add_source(source_data())
        assert seen == [10.0]

    def test_unsubscribe(self, store):
        listener = MagicMock()
        unsubscribe = store.subscribe(listener)
        unsubscribe()
        store.add_source(source_data())
        listener.assert_not_called()

    def test_listeners_run_outside_lock(self, store):
        """Another thread can take the store lock while a listener runs."""
        acquired = []

        def listener(s):
            def try_lock():
                got = s._lock.acquire(blocking=False)
                acquired.append(got)
                if got:
                    s._lock.release()

            worker = threading.Thread(target=try_lock)
            worker.start()
            worker.join()

        store.subscribe(listener)
        source_id = store.add_source(source_data())
        store.update_source(source_id, {"cost": 600})
        store.duplicate_source(source_id)
        store.bulk_disable([source_id])
        store.delete_source(source_id)
        assert acquired and all(acquired)
