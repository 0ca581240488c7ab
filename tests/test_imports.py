# test_imports.py
import importlib

import pytest

import ai_cost_tracker

MODULES = [
    "ai_cost_tracker.cli.main",
    "ai_cost_tracker.config.loader",
    "ai_cost_tracker.core.calculator",
    "ai_cost_tracker.core.currency",
    "ai_cost_tracker.core.pricing",
    "ai_cost_tracker.core.utils",
    "ai_cost_tracker.core.validators",
    "ai_cost_tracker.demo.seed_demo_data",
    "ai_cost_tracker.providers",
    "ai_cost_tracker.providers.usage",
    "ai_cost_tracker.providers.config_store",
    "ai_cost_tracker.storage.repository",
    "ai_cost_tracker.store",
]


@pytest.mark.parametrize("module", MODULES)
def test_module_imports(module):
    assert importlib.import_module(module) is not None


def test_version():
    assert ai_cost_tracker.__version__ == "0.1.0"


def test_provider_exports():
    from ai_cost_tracker.providers import ProviderRegistry, register_builtin_providers
    assert register_builtin_providers(ProviderRegistry()).has_provider("opencode")
