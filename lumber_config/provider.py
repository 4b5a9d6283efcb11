"""
SettingsProvider -- TTL-cached access to LumberSettings.

Responsibility:
    Serve the current settings to services, reloading from the source
    after ``ttl_seconds`` and on demand.  Every loaded or updated settings
    object is validated before it is served.

Architecture position:
    Config layer.  Services receive a provider (or a plain LumberSettings)
    by injection; nothing reads settings files directly.

Failure modes:
    - ConfigurationError when the source yields invalid settings, or when
      ``update`` would produce invalid settings.  The previously cached
      settings stay in place.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from lumber_config.loader import compute_checksum, load_settings
from lumber_config.schema import LumberSettings
from lumber_kernel.domain.clock import Clock, SystemClock
from lumber_kernel.exceptions import ConfigurationError
from lumber_kernel.logging_config import get_logger

logger = get_logger("config.provider")

DEFAULT_TTL_SECONDS = 300

SettingsSource = Callable[[], LumberSettings]


def _validated(settings: LumberSettings) -> LumberSettings:
    result = settings.validate()
    if not result.is_valid:
        raise ConfigurationError(list(result.errors))
    return settings


class SettingsProvider:
    """
    Cache in front of a settings source.

    Contract:
        ``source`` is a callable returning LumberSettings, a path to a YAML
        file, or None for the packaged defaults.
    Guarantees:
        - ``get()`` never returns invalid settings.
        - A reload happens at most once per TTL window unless
          ``clear_cache()`` is called.
    """

    def __init__(
        self,
        source: SettingsSource | Path | str | None = None,
        clock: Clock | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        if source is None or isinstance(source, (str, Path)):
            path = Path(source) if source is not None else None
            self._source: SettingsSource = lambda: load_settings(path)
        else:
            self._source = source
        self._clock = clock or SystemClock()
        self._ttl_seconds = ttl_seconds
        self._cached: LumberSettings | None = None
        self._loaded_at: float | None = None

    @classmethod
    def fixed(cls, settings: LumberSettings, clock: Clock | None = None) -> SettingsProvider:
        """Provider that always serves ``settings`` (tests, scripts)."""
        return cls(source=lambda: settings, clock=clock)

    def _expired(self) -> bool:
        if self._cached is None or self._loaded_at is None:
            return True
        return self._clock.monotonic() - self._loaded_at >= self._ttl_seconds

    def get(self) -> LumberSettings:
        if self._expired():
            settings = _validated(self._source())
            self._cached = settings
            self._loaded_at = self._clock.monotonic()
            logger.info("settings_loaded", extra={
                "checksum": compute_checksum(settings),
                "ttl_seconds": self._ttl_seconds,
            })
        return self._cached

    def clear_cache(self) -> None:
        self._cached = None
        self._loaded_at = None
        logger.debug("settings_cache_cleared")

    def update(self, **values: Any) -> LumberSettings:
        """
        Replace fields on the current settings and cache the result.

        Raises:
            TypeError: if a name is not a settings field.
            ConfigurationError: if the new settings are invalid.
        """
        updated = _validated(replace(self.get(), **values))
        self._cached = updated
        self._loaded_at = self._clock.monotonic()
        logger.info("settings_updated", extra={
            "fields": sorted(values),
            "checksum": compute_checksum(updated),
        })
        return updated

    # Convenience accessors used throughout the services

    def is_yield_enabled(self) -> bool:
        return self.get().yield_enabled

    def is_waste_enabled(self) -> bool:
        return self.get().waste_enabled

    def is_tally_enabled(self) -> bool:
        return self.get().tally_enabled

    def is_fifo_enforced(self) -> bool:
        return self.get().fifo_enforced

    def is_dynamic_uom_enabled(self) -> bool:
        return self.get().dynamic_uom_enabled
