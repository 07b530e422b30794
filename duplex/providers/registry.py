"""Provider registry and TOML configuration loader.

Loads provider definitions from providers.toml and engine defaults from
defaults.toml. ProviderRegistry holds live provider instances keyed by
provider id and answers identity and health-check requests.
"""

from __future__ import annotations

import asyncio
import logging
import tomllib
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from duplex.errors import ConfigError, ProviderNotFoundError
from duplex.providers.base import GenerativeProvider
from duplex.schemas.orchestration import EngineConfig, JitterKind, RetryPolicy
from duplex.schemas.provider import (
    HealthStatus,
    ProviderConfig,
    ProviderHealth,
    ProviderKind,
)

logger = logging.getLogger(__name__)

# Default config directory relative to the duplex package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def _read_toml(path: Path) -> dict:
    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {path}: {e}") from e


def load_provider_configs(config_path: Path | None = None) -> dict[str, ProviderConfig]:
    """Load provider definitions from a TOML file.

    Args:
        config_path: Path to providers.toml. Defaults to duplex/config/providers.toml.

    Returns:
        Dictionary mapping provider ids to ProviderConfig instances.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML structure is invalid.
    """
    path = config_path or _CONFIG_DIR / "providers.toml"
    if not path.exists():
        raise FileNotFoundError(f"Provider registry not found: {path}")

    raw = _read_toml(path)
    section = raw.get("providers")
    if not section or not isinstance(section, dict):
        raise ValueError(f"No [providers] section found in {path}")

    configs: dict[str, ProviderConfig] = {}
    for key, entry in section.items():
        if not isinstance(entry, dict):
            continue
        try:
            configs[key] = ProviderConfig(provider_id=key, **entry)
        except ValidationError as e:
            raise ValueError(f"Invalid provider '{key}' in {path}: {e}") from e

    return configs


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine defaults from a TOML file.

    Args:
        config_path: Path to defaults.toml. Defaults to duplex/config/defaults.toml.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    raw = _read_toml(path)
    engine = raw.get("engine", {})
    retry = engine.get("retry", {})

    return EngineConfig(
        retry=RetryPolicy(
            max_attempts=retry.get("max_attempts", 3),
            base_backoff_ms=retry.get("base_backoff_ms", 1000),
            jitter=JitterKind(retry.get("jitter", "full")),
            timeout_seconds=retry.get("timeout_seconds", 120.0),
        ),
        enable_cross_validation=engine.get("enable_cross_validation", True),
        max_consensus_items=engine.get("max_consensus_items", 5),
        health_timeout_seconds=engine.get("health_timeout_seconds", 10.0),
        max_subscribers=engine.get("max_subscribers", 256),
        default_provider=engine.get("default_provider", ""),
        fallback_provider=engine.get("fallback_provider", ""),
        persist_results=engine.get("persist_results", True),
        history_db_path=engine.get("history_db_path", "~/.duplex/history.db"),
    )


def build_provider(config: ProviderConfig) -> GenerativeProvider:
    """Instantiate the adapter class named by config.kind."""
    # Adapters import litellm; keep the import local so static-only
    # registries never load it
    if config.kind == ProviderKind.STATIC:
        from duplex.providers.static import StaticProvider
        return StaticProvider(config)
    if config.kind == ProviderKind.LITELLM:
        from duplex.providers.litellm_provider import LiteLLMProvider
        return LiteLLMProvider(config)
    if config.kind == ProviderKind.LITELLM_IMAGE:
        from duplex.providers.media import LiteLLMImageProvider
        return LiteLLMImageProvider(config)
    if config.kind == ProviderKind.LITELLM_SPEECH:
        from duplex.providers.media import LiteLLMSpeechProvider
        return LiteLLMSpeechProvider(config)
    raise ConfigError(f"Unknown provider kind: {config.kind}")


class ProviderRegistry:
    """Live provider instances keyed by provider id."""

    def __init__(self, providers: list[GenerativeProvider] | None = None) -> None:
        self._providers: dict[str, GenerativeProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: GenerativeProvider) -> None:
        """Add a provider. Raises ConfigError on duplicate ids."""
        if provider.provider_id in self._providers:
            raise ConfigError(f"Provider '{provider.provider_id}' is already registered")
        self._providers[provider.provider_id] = provider

    def get(self, provider_id: str) -> GenerativeProvider:
        """Look up a provider by id.

        Raises:
            ProviderNotFoundError: If no provider has that id.
        """
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ProviderNotFoundError(provider_id) from None

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[GenerativeProvider]:
        return iter(list(self._providers.values()))

    def __len__(self) -> int:
        return len(self._providers)

    @property
    def ids(self) -> list[str]:
        return list(self._providers)

    async def init_all(self, *, strict: bool = False) -> dict[str, Exception]:
        """Initialize every provider.

        Providers that fail to initialize stay registered (and report DOWN)
        unless ``strict`` is set, in which case the first error is raised.

        Returns:
            Provider id → initialization error for providers that failed.
        """
        failures: dict[str, Exception] = {}
        for provider in self:
            try:
                await provider.init()
            except Exception as e:
                if strict:
                    raise
                logger.warning("Provider %s failed to initialize: %s", provider.provider_id, e)
                failures[provider.provider_id] = e
        return failures

    async def check_health(self, timeout: float = 10.0) -> dict[str, ProviderHealth]:
        """Probe every provider concurrently.

        Each probe has its own timeout; a probe that raises or times out
        reports DOWN. Probes never share state with in-flight requests.
        """
        providers = list(self)

        async def _probe(provider: GenerativeProvider) -> ProviderHealth:
            try:
                return await asyncio.wait_for(provider.health(), timeout=timeout)
            except Exception as e:
                logger.error("Health check failed for %s: %s", provider.provider_id, e)
                return ProviderHealth(status=HealthStatus.DOWN, details={"error": str(e)})

        results = await asyncio.gather(*(_probe(p) for p in providers))
        return {p.provider_id: health for p, health in zip(providers, results, strict=True)}

    async def dispose_all(self) -> None:
        """Dispose every provider, logging (not raising) individual failures."""
        for provider in self:
            try:
                await provider.dispose()
            except Exception:
                logger.exception("Failed to dispose provider %s", provider.provider_id)


def build_registry(configs: dict[str, ProviderConfig]) -> ProviderRegistry:
    """Instantiate a registry from loaded provider configs."""
    return ProviderRegistry([build_provider(c) for c in configs.values()])
