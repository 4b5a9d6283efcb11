"""
Tests for the TTL-cached settings provider.

Covers:
- Source is called once per TTL window
- clear_cache forces a reload
- update validates and replaces the cached settings
- Invalid settings are never served
"""

from decimal import Decimal

import pytest

from lumber_config.provider import SettingsProvider
from lumber_config.schema import LumberSettings
from lumber_kernel.exceptions import ConfigurationError


class CountingSource:
    def __init__(self, settings: LumberSettings):
        self.settings = settings
        self.calls = 0

    def __call__(self) -> LumberSettings:
        self.calls += 1
        return self.settings


class TestCaching:
    def setup_method(self):
        self.source = CountingSource(LumberSettings(tally_enabled=True))

    def test_cached_within_ttl(self, deterministic_clock):
        provider = SettingsProvider(self.source, clock=deterministic_clock, ttl_seconds=60)

        provider.get()
        deterministic_clock.advance(59)
        provider.get()

        assert self.source.calls == 1

    def test_reloads_after_ttl(self, deterministic_clock):
        provider = SettingsProvider(self.source, clock=deterministic_clock, ttl_seconds=60)

        provider.get()
        deterministic_clock.advance(60)
        provider.get()

        assert self.source.calls == 2

    def test_clear_cache(self, deterministic_clock):
        provider = SettingsProvider(self.source, clock=deterministic_clock)

        provider.get()
        provider.clear_cache()
        provider.get()

        assert self.source.calls == 2

    def test_convenience_accessors(self, deterministic_clock):
        provider = SettingsProvider(self.source, clock=deterministic_clock)

        assert provider.is_tally_enabled()
        assert not provider.is_yield_enabled()
        assert not provider.is_waste_enabled()
        assert provider.is_fifo_enforced()
        assert provider.is_dynamic_uom_enabled()

    def test_yaml_path_source(self, tmp_path, deterministic_clock):
        path = tmp_path / "lumber.yaml"
        path.write_text("settings:\n  yield_enabled: true\n")

        provider = SettingsProvider(str(path), clock=deterministic_clock)

        assert provider.is_yield_enabled()


class TestValidation:
    def test_invalid_source_raises(self, deterministic_clock):
        provider = SettingsProvider(
            lambda: LumberSettings(waste_enabled=True),
            clock=deterministic_clock,
        )

        with pytest.raises(ConfigurationError):
            provider.get()

    def test_update(self, settings_provider):
        updated = settings_provider.update(default_yield_pct=Decimal("85"))

        assert updated.default_yield_pct == Decimal("85")
        assert settings_provider.get().default_yield_pct == Decimal("85")

    def test_invalid_update_keeps_previous(self, settings_provider):
        with pytest.raises(ConfigurationError):
            settings_provider.update(yield_enabled=False)

        assert settings_provider.is_yield_enabled()

    def test_update_unknown_field(self, settings_provider):
        with pytest.raises(TypeError):
            settings_provider.update(colour="red")
