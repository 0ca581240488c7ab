"""
Provider usage adapters, registry and usage sync.
"""

from .base import (
    HealthStatus,
    ProviderError,
    ProviderErrorCode,
    ProviderHealth,
    ProviderTimeouts,
    ProviderValidationResult,
    UsageParams,
    UsageProvider,
    UsageResult,
)
from .registry import ProviderInfo, ProviderRegistry, register_builtin_providers
