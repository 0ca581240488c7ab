"""
Saved provider credentials.
"""

import logging
from typing import Awaitable, Callable, List, Optional

from .base import ProviderValidationResult
from .connection import check_provider_connection
from ai_cost_tracker.core.validators import validate_provider_config
from ai_cost_tracker.storage.models import ProviderConfig
from ai_cost_tracker.storage.repository import CostTrackerRepository

logger = logging.getLogger(__name__)

ConnectionCheck = Callable[[ProviderConfig], Awaitable[ProviderValidationResult]]


async def _check_connection(config: ProviderConfig) -> ProviderValidationResult:
    return await check_provider_connection(config.provider, config.api_key, config.base_url)


class ProviderConfigStore:
    """One config per provider name, persisted through the repository.

    ``save_config`` validates the config format and runs a connection check
    before anything is written.
    """

    def __init__(
        self,
        repository: Optional[CostTrackerRepository] = None,
        connection_check: ConnectionCheck = _check_connection,
    ):
        self.repository = repository or CostTrackerRepository()
        self._connection_check = connection_check

    def list_configs(self) -> List[ProviderConfig]:
        return self.repository.load_provider_configs()

    def get_config(self, provider: str) -> Optional[ProviderConfig]:
        for config in self.list_configs():
            if config.provider == provider:
                return config
        return None

    def enabled_configs(self) -> List[ProviderConfig]:
        return [c for c in self.list_configs() if c.is_enabled]

    async def save_config(self, config: ProviderConfig, check_connection: bool = True) -> ProviderValidationResult:
        validation = validate_provider_config(config)
        if not validation.is_valid:
            return ProviderValidationResult(False, "; ".join(validation.messages()))

        if check_connection:
            result = await self._connection_check(config)
            if not result.is_valid:
                return result

        configs = [c for c in self.list_configs() if c.provider != config.provider]
        configs.append(config)
        self.repository.save_provider_configs(configs)
        logger.debug("Saved provider config for %s", config.provider)
        return ProviderValidationResult(True, "Configuration saved")

    def delete_config(self, provider: str) -> bool:
        configs = self.list_configs()
        remaining = [c for c in configs if c.provider != provider]
        if len(remaining) == len(configs):
            return False
        self.repository.save_provider_configs(remaining)
        return True

    def toggle_enabled(self, provider: str) -> Optional[ProviderConfig]:
        """Flip ``is_enabled`` for a provider; returns the new config or None."""
        configs = self.list_configs()
        updated = None
        for i, config in enumerate(configs):
            if config.provider == provider:
                updated = ProviderConfig(config.provider, config.api_key, config.base_url, not config.is_enabled)
                configs[i] = updated
        if updated is not None:
            self.repository.save_provider_configs(configs)
        return updated
