"""
Tests for the provider registry, usage sync, connection tests and saved
provider configs.
"""

import asyncio
import json

import httpx
import pytest

from ai_cost_tracker.providers.base import ProviderErrorCode, ProviderValidationResult
from ai_cost_tracker.providers.config_store import ProviderConfigStore
from ai_cost_tracker.providers.connection import (
    check_provider_connection,
    get_default_base_url,
    mock_connection_test,
)
from ai_cost_tracker.providers.mock_provider import MockProvider
from ai_cost_tracker.providers.opencode_provider import OpenCodeProvider
from ai_cost_tracker.providers.registry import (
    ProviderInfo,
    ProviderRegistry,
    register_builtin_providers,
)
from ai_cost_tracker.providers.usage import UsageSync, default_date_range
from ai_cost_tracker.storage.kv import MemoryKeyValueStore
from ai_cost_tracker.storage.models import ProviderConfig
from ai_cost_tracker.storage.repository import CONFIG_KEY, USAGE_KEY, CostTrackerRepository


def opencode_transport(calls):
    """OpenCode usage API stub counting requests; 'bad-key' gets a 401."""
    def handler(request):
        calls.append(request)
        if request.headers["Authorization"] == "Bearer bad-key-123":
            return httpx.Response(401, json={})
        return httpx.Response(200, json={"data": [
            {"id": "oc-1", "model_id": "minimax-m2", "input_tokens": 10, "output_tokens": 5,
             "cost": 0.5, "date": "2024-06-02"},
        ]})
    return httpx.MockTransport(handler)


class TestRegistry:
    """Test explicit provider registration."""

    def test_builtin_registration(self):
        registry = register_builtin_providers(ProviderRegistry())
        assert registry.list_providers() == ["opencode", "openai", "anthropic", "minimax", "generic", "mock"]
        assert registry.default_provider == "opencode"
        assert "usage" in registry.get_features("openai")

    def test_registries_are_independent(self):
        registry = register_builtin_providers(ProviderRegistry())
        assert ProviderRegistry().list_providers() == []
        assert registry.has_provider("mock")

    def test_create_returns_fresh_instances(self):
        registry = register_builtin_providers(ProviderRegistry())
        config = ProviderConfig("opencode", "oc-key-1234")
        first = registry.create(config)
        assert isinstance(first, OpenCodeProvider)
        assert first is not registry.create(config)

    def test_create_unknown_raises(self):
        with pytest.raises(KeyError, match="not registered"):
            ProviderRegistry().create(ProviderConfig("nobody", "key-12345"))

    def test_overwrite_and_unregister(self):
        registry = ProviderRegistry()
        registry.register(ProviderInfo("a", "A", MockProvider))
        registry.register(ProviderInfo("b", "B", MockProvider))
        registry.register(ProviderInfo("a", "A v2", MockProvider))
        assert registry.get_info("a").display_name == "A v2"

        registry.unregister("a")
        assert registry.default_provider == "b"
        registry.unregister("missing")
        registry.clear()
        assert registry.default_provider is None

    def test_set_default_provider(self):
        registry = register_builtin_providers(ProviderRegistry())
        registry.set_default_provider("mock")
        assert registry.default_provider == "mock"
        with pytest.raises(KeyError):
            registry.set_default_provider("nope")


class TestUsageSync:
    """Test concurrent usage fetches and the usage cache."""

    def setup_method(self):
        self.kv = MemoryKeyValueStore()
        self.repository = CostTrackerRepository(self.kv)
        self.calls = []
        self.sync = UsageSync(
            register_builtin_providers(ProviderRegistry()),
            self.repository,
            transport=opencode_transport(self.calls),
        )

    def test_sync_collects_results_per_provider(self):
        configs = [
            ProviderConfig("opencode", "oc-key-1234"),
            ProviderConfig("mock", "mock-key-1"),
            ProviderConfig("anthropic", "sk-ant-" + "x" * 32, is_enabled=False),
        ]
        results = asyncio.run(self.sync.sync(configs, "2024-06-01", "2024-06-02"))

        assert set(results) == {"opencode", "mock"}
        assert all(r.success for r in results.values())
        stored = self.repository.load_usage()
        assert len(stored) == 1 + 4
        assert self.repository.get_last_sync() is not None

    def test_failure_isolated(self):
        configs = [ProviderConfig("opencode", "bad-key-123"), ProviderConfig("mock", "mock-key-1")]
        results = asyncio.run(self.sync.sync(configs, "2024-06-01", "2024-06-01"))

        assert results["opencode"].error_code == ProviderErrorCode.UNAUTHORIZED
        assert results["mock"].success
        assert {u.provider for u in self.repository.load_usage()} == {"mock"}

    def test_all_failures_leave_cache_untouched(self):
        asyncio.run(self.sync.sync([ProviderConfig("opencode", "bad-key-123")], "2024-06-01", "2024-06-01"))
        assert self.kv.get_item(USAGE_KEY) is None
        assert self.repository.get_last_sync() is None

    def test_results_cached(self):
        config = ProviderConfig("opencode", "oc-key-1234")
        asyncio.run(self.sync.fetch_provider_usage(config, "2024-06-01", "2024-06-30"))
        asyncio.run(self.sync.fetch_provider_usage(config, "2024-06-01", "2024-06-30"))
        assert len(self.calls) == 1

        self.sync.clear_cache()
        asyncio.run(self.sync.fetch_provider_usage(config, "2024-06-01", "2024-06-30"))
        assert len(self.calls) == 2

    def test_cache_expires(self):
        now = [1000.0]
        self.sync._clock = lambda: now[0]
        config = ProviderConfig("opencode", "oc-key-1234")
        asyncio.run(self.sync.fetch_provider_usage(config, "2024-06-01", "2024-06-30"))
        now[0] += 301
        assert self.sync.cached_usage("opencode", "2024-06-01", "2024-06-30") is None

    def test_expired_entries_pruned_on_insert(self):
        """Ranges never queried again do not accumulate in the cache."""
        now = [1000.0]
        self.sync._clock = lambda: now[0]
        config = ProviderConfig("opencode", "oc-key-1234")
        asyncio.run(self.sync.fetch_provider_usage(config, "2024-05-01", "2024-05-31"))
        now[0] += 301
        asyncio.run(self.sync.fetch_provider_usage(config, "2024-06-01", "2024-06-30"))
        assert list(self.sync._cache) == [("opencode", "2024-06-01", "2024-06-30")]

    def test_unknown_provider_uses_generic(self):
        config = ProviderConfig("acme", "acme-key-123", base_url="https://llm.acme.test")
        result = asyncio.run(self.sync.fetch_provider_usage(config, "2024-06-01", "2024-06-30"))
        assert result.success
        assert result.data == []
        assert self.calls[0].url.host == "llm.acme.test"

    def test_default_date_range(self):
        from datetime import date
        assert default_date_range(date(2024, 6, 30)) == ("2024-05-31", "2024-06-30")


class TestConnection:
    """Test connection checks against a stubbed health endpoint."""

    def run_check(self, handler, provider="opencode", base_url=None):
        return asyncio.run(check_provider_connection(
            provider, "key-12345", base_url, transport=httpx.MockTransport(handler),
        ))

    def test_success(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "ok"})

        result = self.run_check(handler)
        assert result.is_valid
        assert str(seen[0].url) == "https://api.opencode.ai/v1/health"

    def test_custom_base_url(self):
        seen = []
        self.run_check(lambda r: seen.append(r) or httpx.Response(200), base_url="https://proxy.test/api/")
        assert str(seen[0].url) == "https://proxy.test/api/health"

    @pytest.mark.parametrize("status_code,expected", [
        (401, ProviderErrorCode.UNAUTHORIZED),
        (429, ProviderErrorCode.RATE_LIMITED),
        (503, ProviderErrorCode.CONNECTION_FAILED),
    ])
    def test_http_failures(self, status_code, expected):
        result = self.run_check(lambda r: httpx.Response(status_code))
        assert not result.is_valid
        assert result.error_code == expected

    def test_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)
        assert self.run_check(handler).error_code == ProviderErrorCode.TIMEOUT

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)
        assert self.run_check(handler).error_code == ProviderErrorCode.NETWORK_ERROR

    def test_unknown_provider_without_url(self):
        result = self.run_check(lambda r: httpx.Response(200), provider="acme")
        assert result.error_code == ProviderErrorCode.CONNECTION_FAILED

    def test_default_base_urls(self):
        assert get_default_base_url("OpenAI") == "https://api.openai.com/v1"
        assert get_default_base_url("acme") == ""

    def test_mock_connection_test(self):
        assert asyncio.run(mock_connection_test(True, delay=0)).is_valid
        failed = asyncio.run(mock_connection_test(False, delay=0))
        assert failed.error_code == ProviderErrorCode.MOCK_ERROR


class TestProviderConfigStore:
    """Test saving provider credentials."""

    def setup_method(self):
        self.kv = MemoryKeyValueStore()
        self.checked = []

        async def check(config):
            self.checked.append(config)
            if config.api_key == "rejected-key":
                return ProviderValidationResult(False, "Invalid API key", ProviderErrorCode.UNAUTHORIZED)
            return ProviderValidationResult(True, "ok")

        self.store = ProviderConfigStore(CostTrackerRepository(self.kv), connection_check=check)

    def test_save_and_get(self):
        result = asyncio.run(self.store.save_config(ProviderConfig("opencode", "oc-key-1234")))
        assert result.is_valid
        assert self.store.get_config("opencode").api_key == "oc-key-1234"
        assert json.loads(self.kv.get_item(CONFIG_KEY))[0]["apiKey"] == "oc-key-1234"

    def test_save_replaces_existing(self):
        asyncio.run(self.store.save_config(ProviderConfig("opencode", "oc-key-1234")))
        asyncio.run(self.store.save_config(ProviderConfig("opencode", "oc-key-5678")))
        assert [c.api_key for c in self.store.list_configs()] == ["oc-key-5678"]

    def test_invalid_format_not_checked_or_saved(self):
        result = asyncio.run(self.store.save_config(ProviderConfig("openai", "nope")))
        assert not result.is_valid
        assert self.checked == []
        assert self.store.list_configs() == []

    def test_failed_connection_not_saved(self):
        result = asyncio.run(self.store.save_config(ProviderConfig("opencode", "rejected-key")))
        assert result.error_code == ProviderErrorCode.UNAUTHORIZED
        assert self.store.get_config("opencode") is None

    def test_skip_connection_check(self):
        asyncio.run(self.store.save_config(ProviderConfig("opencode", "rejected-key"), check_connection=False))
        assert self.store.get_config("opencode") is not None

    def test_toggle_and_delete(self):
        asyncio.run(self.store.save_config(ProviderConfig("opencode", "oc-key-1234")))
        toggled = self.store.toggle_enabled("opencode")
        assert toggled.is_enabled is False
        assert self.store.enabled_configs() == []
        assert self.store.toggle_enabled("missing") is None

        assert self.store.delete_config("opencode")
        assert not self.store.delete_config("opencode")
