"""
Configuration management and loading.

Handles the tracker's YAML settings file and API keys taken from
environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from ai_cost_tracker.core.calculator import DEFAULT_TREND_MONTHS
from ai_cost_tracker.providers.base import ProviderTimeouts
from ai_cost_tracker.storage.db import DEFAULT_DB_PATH
from ai_cost_tracker.storage.models import Currency, ProviderConfig


@dataclass(frozen=True)
class ProviderSettings:
    """Credentials for one provider as read from the config file."""
    name: str
    api_key: str
    base_url: Optional[str] = None
    enabled: bool = True

    def __post_init__(self):
        """Validate base URL scheme."""
        if self.base_url and not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"providers.{self.name}.base_url must start with http:// or https://")


@dataclass(frozen=True)
class TrackerConfig:
    """Complete tracker configuration."""
    storage_path: str = DEFAULT_DB_PATH
    default_currency: Currency = Currency.USD
    trend_months: int = DEFAULT_TREND_MONTHS
    timeouts: ProviderTimeouts = field(default_factory=ProviderTimeouts)
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)

    def provider_configs(self) -> List[ProviderConfig]:
        """Provider credentials in the shape adapters consume."""
        return [
            ProviderConfig(
                provider=settings.name,
                api_key=settings.api_key,
                base_url=settings.base_url,
                is_enabled=settings.enabled,
            )
            for settings in self.providers.values()
        ]


def load_tracker_config(path: str) -> TrackerConfig:
    """Load and validate tracker configuration from YAML file.

    Validation is strict: unknown keys are rejected rather than ignored so
    a typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated TrackerConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Tracker config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'storage', 'default_currency', 'trend_months', 'timeouts', 'providers'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    # Storage
    storage_data = raw_config.get('storage', {}) or {}
    if not isinstance(storage_data, dict):
        raise ValueError("'storage' must be a dictionary")
    unknown_storage_keys = set(storage_data.keys()) - {'path'}
    if unknown_storage_keys:
        raise ValueError(f"Unknown storage keys: {unknown_storage_keys}")
    storage_path = storage_data.get('path', DEFAULT_DB_PATH)
    if not isinstance(storage_path, str) or not storage_path:
        raise ValueError("'storage.path' must be a non-empty string")

    # Currency
    currency_str = raw_config.get('default_currency', Currency.USD.value)
    try:
        default_currency = Currency(str(currency_str).upper())
    except ValueError:
        valid = [c.value for c in Currency]
        raise ValueError(f"'default_currency' must be one of: {valid}")

    # Trend window
    trend_months = raw_config.get('trend_months', DEFAULT_TREND_MONTHS)
    if isinstance(trend_months, bool) or not isinstance(trend_months, int) or trend_months < 1:
        raise ValueError("'trend_months' must be an integer >= 1")

    timeouts = _parse_timeouts(raw_config.get('timeouts', {}) or {})

    providers_data = raw_config.get('providers', {}) or {}
    if not isinstance(providers_data, dict):
        raise ValueError("'providers' must be a dictionary")
    providers = {}
    for name, provider_data in providers_data.items():
        if not isinstance(provider_data, dict):
            raise ValueError(f"Provider '{name}' must be a dictionary")
        providers[name] = _parse_provider(name, provider_data)

    return TrackerConfig(
        storage_path=storage_path,
        default_currency=default_currency,
        trend_months=trend_months,
        timeouts=timeouts,
        providers=providers,
    )


def _parse_timeouts(data: Dict) -> ProviderTimeouts:
    if not isinstance(data, dict):
        raise ValueError("'timeouts' must be a dictionary")

    allowed_keys = {'usage', 'health', 'connection_test'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown timeout keys: {unknown_keys}")

    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError(f"'timeouts.{key}' must be > 0")

    return ProviderTimeouts(**{key: float(value) for key, value in data.items()})


def _parse_provider(name: str, data: Dict) -> ProviderSettings:
    """Parse and validate one provider section.

    Raises:
        ValueError: If configuration is invalid or the referenced
            environment variable is unset
    """
    path = f"providers.{name}"
    allowed_keys = {'api_key', 'api_key_env', 'base_url', 'enabled'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    if 'api_key' in data and 'api_key_env' in data:
        raise ValueError(f"Only one of 'api_key' or 'api_key_env' allowed in {path}")

    if 'api_key_env' in data:
        env_name = data['api_key_env']
        api_key = os.environ.get(str(env_name), "")
        if not api_key:
            raise ValueError(f"Environment variable '{env_name}' for {path} is not set")
    elif 'api_key' in data:
        api_key = data['api_key']
        if not isinstance(api_key, str) or not api_key:
            raise ValueError(f"'api_key' in {path} must be a non-empty string")
    else:
        raise ValueError(f"Missing 'api_key' or 'api_key_env' in {path}")

    enabled = data.get('enabled', True)
    if not isinstance(enabled, bool):
        raise ValueError(f"'enabled' in {path} must be true or false")

    return ProviderSettings(
        name=name,
        api_key=api_key,
        base_url=data.get('base_url'),
        enabled=enabled,
    )
