"""
Settings Loader (``lumber_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a typed
``lumber_config.schema.LumberSettings``.  Runtime callers go through
``lumber_config.SettingsProvider``; the loader is the provider's source
and is also used directly by tests.

Invariants enforced
-------------------
* Unknown keys raise ``KeyError``; there is no silent ignore.
* Booleans must be YAML booleans; numeric values are parsed through
  ``str`` into ``Decimal`` so floats never leak into settings.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed settings for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key  -> ``KeyError``.
* Wrongly typed value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from lumber_config.schema import LumberSettings

_FIELD_TYPES: dict[str, str] = {f.name: str(f.type) for f in fields(LumberSettings)}

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_value(name: str, value: Any) -> Any:
    kind = _FIELD_TYPES[name]
    if kind == "bool":
        if not isinstance(value, bool):
            raise ValueError(f"Setting {name!r} must be true or false, got {value!r}")
        return value
    if kind == "int":
        if isinstance(value, bool):
            raise ValueError(f"Setting {name!r} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Setting {name!r} must be an integer, got {value!r}") from e
    if kind == "Decimal":
        if isinstance(value, bool) or value is None:
            raise ValueError(f"Setting {name!r} must be a number, got {value!r}")
        try:
            return Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Setting {name!r} must be a number, got {value!r}") from e
    return value


def parse_settings(data: dict[str, Any]) -> LumberSettings:
    """
    Parse a settings mapping.  Keys not present keep their defaults.

    Raises:
        KeyError: on a key that is not a LumberSettings field.
        ValueError: on a wrongly typed value.
    """
    unknown = sorted(set(data) - set(_FIELD_TYPES))
    if unknown:
        raise KeyError(f"Unknown settings: {', '.join(unknown)}")
    return LumberSettings(**{k: _parse_value(k, v) for k, v in data.items()})


def load_settings(path: Path | None = None) -> LumberSettings:
    """Load and parse a settings file (the packaged defaults when ``path`` is None)."""
    data = load_yaml_file(path or DEFAULT_SETTINGS_PATH)
    return parse_settings(data.get("settings", data))


def compute_checksum(settings: LumberSettings) -> str:
    """SHA-256 of the canonical JSON form; identical settings hash identically."""
    canonical = json.dumps(settings.to_dict(), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
