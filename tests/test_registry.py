"""Tests for duplex.providers.registry — TOML loading and ProviderRegistry."""

from __future__ import annotations

import asyncio

import pytest

from duplex.errors import ConfigError, ProviderNotFoundError
from duplex.providers.registry import (
    ProviderRegistry,
    build_provider,
    build_registry,
    load_engine_config,
    load_provider_configs,
)
from duplex.providers.static import StaticProvider
from duplex.schemas.domains import Domain
from duplex.schemas.orchestration import JitterKind
from duplex.schemas.provider import HealthStatus, ProviderConfig, ProviderHealth, ProviderKind


def _make_config(provider_id: str = "static-a", **overrides) -> ProviderConfig:
    defaults = {
        "provider_id": provider_id,
        "kind": ProviderKind.STATIC,
        "domain": Domain.CASTING,
    }
    defaults.update(overrides)
    return ProviderConfig(**defaults)


class _SlowHealthProvider(StaticProvider):
    async def health(self) -> ProviderHealth:
        await asyncio.sleep(10)
        return ProviderHealth(status=HealthStatus.UP)


class _BrokenHealthProvider(StaticProvider):
    async def health(self) -> ProviderHealth:
        raise RuntimeError("probe exploded")


class TestLoadProviderConfigs:
    def test_loads_bundled_registry(self):
        configs = load_provider_configs()
        assert "llama3" in configs
        assert configs["llama3"].kind == ProviderKind.LITELLM
        assert configs["llama3"].domain == Domain.CASTING
        assert configs["llama3"].provider_id == "llama3"

    def test_every_domain_has_two_providers(self):
        configs = load_provider_configs()
        for domain in Domain:
            assert sum(1 for c in configs.values() if c.domain == domain) >= 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_provider_configs(tmp_path / "nope.toml")

    def test_missing_section(self, tmp_path):
        path = tmp_path / "providers.toml"
        path.write_text("[engine]\nx = 1\n")
        with pytest.raises(ValueError, match="No \\[providers\\]"):
            load_provider_configs(path)

    def test_invalid_entry(self, tmp_path):
        path = tmp_path / "providers.toml"
        path.write_text('[providers.bad]\nkind = "carrier-pigeon"\ndomain = "casting"\n')
        with pytest.raises(ValueError, match="Invalid provider 'bad'"):
            load_provider_configs(path)

    def test_malformed_toml(self, tmp_path):
        path = tmp_path / "providers.toml"
        path.write_text("[providers\n")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_provider_configs(path)


class TestLoadEngineConfig:
    def test_loads_bundled_defaults(self):
        config = load_engine_config()
        assert config.max_consensus_items == 5
        assert config.enable_cross_validation is True
        assert config.retry.max_attempts == 3
        assert config.retry.jitter == JitterKind.FULL

    def test_partial_file_uses_defaults(self, tmp_path):
        path = tmp_path / "defaults.toml"
        path.write_text('[engine]\nmax_consensus_items = 3\n[engine.retry]\njitter = "none"\n')
        config = load_engine_config(path)
        assert config.max_consensus_items == 3
        assert config.retry.jitter == JitterKind.NONE
        assert config.retry.base_backoff_ms == 1000

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "nope.toml")


class TestBuildProvider:
    def test_static(self):
        assert isinstance(build_provider(_make_config()), StaticProvider)

    def test_litellm(self):
        from duplex.providers.litellm_provider import LiteLLMProvider

        provider = build_provider(_make_config(kind=ProviderKind.LITELLM, model="m"))
        assert isinstance(provider, LiteLLMProvider)

    def test_media(self):
        from duplex.providers.media import LiteLLMImageProvider, LiteLLMSpeechProvider

        image = build_provider(_make_config(kind=ProviderKind.LITELLM_IMAGE, domain=Domain.IMAGE))
        speech = build_provider(_make_config(kind=ProviderKind.LITELLM_SPEECH, domain=Domain.AUDIO))
        assert isinstance(image, LiteLLMImageProvider)
        assert isinstance(speech, LiteLLMSpeechProvider)


class TestProviderRegistry:
    def test_lookup(self):
        registry = build_registry({"a": _make_config("a"), "b": _make_config("b")})
        assert registry.get("a").provider_id == "a"
        assert "b" in registry
        assert len(registry) == 2
        assert registry.ids == ["a", "b"]

    def test_unknown_id(self):
        with pytest.raises(ProviderNotFoundError):
            ProviderRegistry().get("ghost")

    def test_duplicate_id(self):
        registry = ProviderRegistry([StaticProvider(_make_config("a"))])
        with pytest.raises(ConfigError, match="already registered"):
            registry.register(StaticProvider(_make_config("a")))

    @pytest.mark.asyncio
    async def test_init_all_collects_failures(self):
        registry = ProviderRegistry([
            StaticProvider(_make_config("a")),
            StaticProvider(_make_config("b", api_key_env="DUPLEX_TEST_MISSING_KEY")),
        ])
        failures = await registry.init_all()
        assert list(failures) == ["b"]
        assert registry.get("a").initialized is True

    @pytest.mark.asyncio
    async def test_init_all_strict_raises(self):
        registry = ProviderRegistry([
            StaticProvider(_make_config("b", api_key_env="DUPLEX_TEST_MISSING_KEY")),
        ])
        with pytest.raises(Exception, match="Missing credentials"):
            await registry.init_all(strict=True)

    @pytest.mark.asyncio
    async def test_check_health(self):
        up = StaticProvider(_make_config("up"))
        await up.init()
        registry = ProviderRegistry([
            up,
            StaticProvider(_make_config("cold")),
            _SlowHealthProvider(_make_config("slow")),
            _BrokenHealthProvider(_make_config("broken")),
        ])
        snapshot = await registry.check_health(timeout=0.05)
        assert snapshot["up"].status == HealthStatus.UP
        assert snapshot["cold"].status == HealthStatus.DOWN
        assert snapshot["slow"].status == HealthStatus.DOWN
        assert snapshot["broken"].status == HealthStatus.DOWN
        assert "probe exploded" in snapshot["broken"].details["error"]

    @pytest.mark.asyncio
    async def test_dispose_all(self):
        provider = StaticProvider(_make_config("a"))
        await provider.init()
        registry = ProviderRegistry([provider])
        await registry.dispose_all()
        await registry.dispose_all()
        assert provider.initialized is False
