"""
Provider catalogue, selection rules, and selector configuration.
"""

from multiprompt.providers.registry import (
    MAX_SELECTED,
    MIN_SELECTED,
    Provider,
    ProviderId,
    ProviderRegistry,
)
from multiprompt.providers.config import (
    ProviderConfigs,
    ProviderSelectorConfig,
    load_provider_configs,
)

__all__ = [
    "MAX_SELECTED",
    "MIN_SELECTED",
    "Provider",
    "ProviderId",
    "ProviderRegistry",
    "ProviderConfigs",
    "ProviderSelectorConfig",
    "load_provider_configs",
]
