"""Duplex provider layer.

Providers are the only way backends are called. The orchestrator talks to
them exclusively through the GenerativeProvider interface.
"""

from duplex.providers.base import GenerativeProvider, StageCallback
from duplex.providers.registry import (
    ProviderRegistry,
    build_provider,
    build_registry,
    load_engine_config,
    load_provider_configs,
)
from duplex.providers.static import StaticProvider

__all__ = [
    "GenerativeProvider",
    "ProviderRegistry",
    "StageCallback",
    "StaticProvider",
    "build_provider",
    "build_registry",
    "load_engine_config",
    "load_provider_configs",
]
