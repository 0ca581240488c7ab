"""
Explicit registry of provider adapters.

Nothing registers itself at import time; the composing application builds a
ProviderRegistry and calls ``register_builtin_providers`` on it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Type

import httpx

from .anthropic_provider import AnthropicProvider
from .base import ProviderTimeouts, UsageProvider
from .generic_provider import GenericProvider
from .minimax_provider import MinimaxProvider
from .mock_provider import MockProvider
from .openai_provider import OpenAIProvider
from .opencode_provider import OpenCodeProvider
from ai_cost_tracker.storage.models import ProviderConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderInfo:
    """Registration entry: adapter class plus display metadata."""
    name: str
    display_name: str
    provider_class: Type[UsageProvider]
    description: str = ""
    website: Optional[str] = None
    features: FrozenSet[str] = field(default_factory=frozenset)


class ProviderRegistry:
    """Maps provider names to adapter classes.

    The first registered provider becomes the default.
    """

    def __init__(self):
        self._providers: Dict[str, ProviderInfo] = {}
        self._default: Optional[str] = None

    def register(self, info: ProviderInfo) -> None:
        if info.name in self._providers:
            logger.warning("Provider %r already registered, overwriting", info.name)
        self._providers[info.name] = info
        if self._default is None:
            self._default = info.name
        logger.debug("Registered provider %r (%s)", info.name, info.display_name)

    def unregister(self, name: str) -> None:
        if name not in self._providers:
            logger.warning("Provider %r is not registered", name)
            return
        del self._providers[name]
        if self._default == name:
            self._default = next(iter(self._providers), None)

    def get_info(self, name: str) -> ProviderInfo:
        """
        Raises:
            KeyError: If no provider is registered under ``name``
        """
        if name not in self._providers:
            raise KeyError(f"Provider not registered: {name}")
        return self._providers[name]

    def create(
        self,
        config: ProviderConfig,
        timeouts: Optional[ProviderTimeouts] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> UsageProvider:
        """Build a fresh adapter for ``config.provider``."""
        info = self.get_info(config.provider)
        return info.provider_class(config, timeouts=timeouts, transport=transport)

    def has_provider(self, name: str) -> bool:
        return name in self._providers

    def list_providers(self) -> List[str]:
        return list(self._providers)

    def list_metadata(self) -> List[ProviderInfo]:
        return list(self._providers.values())

    def get_features(self, name: str) -> FrozenSet[str]:
        return self.get_info(name).features

    @property
    def default_provider(self) -> Optional[str]:
        return self._default

    def set_default_provider(self, name: str) -> None:
        self.get_info(name)
        self._default = name

    def clear(self) -> None:
        self._providers.clear()
        self._default = None


BUILTIN_PROVIDERS = (
    ProviderInfo(
        "opencode", "OpenCode", OpenCodeProvider,
        description="OpenCode AI model provider",
        website="https://opencode.ai",
        features=frozenset({"usage", "models", "health"}),
    ),
    ProviderInfo(
        "openai", "OpenAI", OpenAIProvider,
        description="OpenAI GPT models",
        website="https://openai.com",
        features=frozenset({"usage", "models", "health"}),
    ),
    ProviderInfo(
        "anthropic", "Anthropic", AnthropicProvider,
        description="Anthropic Claude models",
        website="https://anthropic.com",
        features=frozenset({"usage", "health"}),
    ),
    ProviderInfo(
        "minimax", "MiniMax", MinimaxProvider,
        description="MiniMax coding plan quota",
        website="https://www.minimaxi.com",
        features=frozenset({"usage", "health"}),
    ),
    ProviderInfo(
        "generic", "Generic endpoint", GenericProvider,
        description="Any endpoint without a usage API",
        features=frozenset({"health"}),
    ),
    ProviderInfo(
        "mock", "Mock", MockProvider,
        description="Offline deterministic data",
        features=frozenset({"usage", "models", "health"}),
    ),
)


def register_builtin_providers(registry: ProviderRegistry) -> ProviderRegistry:
    for info in BUILTIN_PROVIDERS:
        registry.register(info)
    return registry
