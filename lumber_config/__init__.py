"""
lumber_config -- lumber settings: schema, YAML loader, cached provider.

Responsibility:
    The only way services obtain settings.  ``SettingsProvider`` serves a
    validated ``LumberSettings`` loaded from YAML (``defaults.yaml`` when
    no file is given) and reloads it after the cache TTL.

Architecture position:
    Configuration -- sits above ``lumber_kernel`` and ``lumber_engines``
    and below ``lumber_services`` / ``lumber_batch``.  The kernel MUST
    NEVER import from ``lumber_config``.

Failure modes:
    - ``ConfigurationError`` on invalid settings.
    - ``KeyError`` / ``ValueError`` from the loader on malformed files.
"""

from lumber_config.loader import (
    compute_checksum,
    load_settings,
    load_yaml_file,
    parse_settings,
)
from lumber_config.provider import SettingsProvider
from lumber_config.schema import LumberSettings

__all__ = [
    "LumberSettings",
    "SettingsProvider",
    "compute_checksum",
    "load_settings",
    "load_yaml_file",
    "parse_settings",
]
