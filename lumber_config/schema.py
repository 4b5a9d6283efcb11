"""
LumberSettings schema.

The system-wide settings record: feature flags that switch the optional
modules on and off, and the numeric defaults the engines and services
fall back on.  YAML files are parsed into this type by the loader and
served at runtime by ``SettingsProvider``.

Module dependencies:
    waste tracking requires yield tracking
    repack requires tally sheets
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from decimal import Decimal
from typing import Any

from lumber_engines.validation import (
    validate_waste_percentage,
    validate_yield_percentage,
)
from lumber_kernel.domain.results import ValidationResult
from lumber_kernel.domain.values import (
    BF_PRECISION,
    PERCENTAGE_PRECISION,
    DimensionSet,
)

MIN_PRECISION = 0
MAX_PRECISION = 8

# Optional modules reported by ``module_status``
_MODULE_FLAGS: dict[str, str] = {
    "yield": "yield_enabled",
    "waste": "waste_enabled",
    "tally": "tally_enabled",
    "repack": "repack_enabled",
    "grade": "grade_enabled",
    "moisture": "moisture_enabled",
}


@dataclass(frozen=True)
class LumberSettings:
    """
    Immutable snapshot of the lumber settings.

    Defaults mirror a fresh installation: every optional module off,
    dynamic UOM on, FIFO enforced.
    """

    # Feature flags
    yield_enabled: bool = False
    waste_enabled: bool = False
    tally_enabled: bool = False
    repack_enabled: bool = False
    grade_enabled: bool = False
    moisture_enabled: bool = False
    dynamic_uom_enabled: bool = True
    fifo_enforced: bool = True
    auto_create_tally: bool = False
    dimensions_required: bool = False
    auto_correct_enabled: bool = False

    # Numeric defaults
    default_yield_pct: Decimal = Decimal("95")
    default_waste_pct: Decimal = Decimal("5")
    bf_precision: int = BF_PRECISION
    percentage_precision: int = PERCENTAGE_PRECISION

    # System default dimensions (inches, inches, feet)
    default_thickness: Decimal = Decimal("1")
    default_width: Decimal = Decimal("12")
    default_length: Decimal = Decimal("8")
    default_pieces_per_bundle: int = 1

    def validate(self) -> ValidationResult:
        """Range checks and module dependency rules."""
        errors: list[str] = []

        yield_result = validate_yield_percentage(self.default_yield_pct)
        if not yield_result.is_valid:
            errors.append(f"Default Yield: {', '.join(yield_result.errors)}")

        waste_result = validate_waste_percentage(self.default_waste_pct)
        if not waste_result.is_valid:
            errors.append(f"Default Waste: {', '.join(waste_result.errors)}")

        if not MIN_PRECISION <= self.bf_precision <= MAX_PRECISION:
            errors.append("BF Precision must be between 0 and 8")
        if not MIN_PRECISION <= self.percentage_precision <= MAX_PRECISION:
            errors.append("Percentage Precision must be between 0 and 8")

        if self.waste_enabled and not self.yield_enabled:
            errors.append("Waste Tracking requires Yield Tracking to be enabled")
        if self.repack_enabled and not self.tally_enabled:
            errors.append("Repack Module requires Tally Sheets to be enabled")

        return ValidationResult.of(errors, yield_result.warnings + waste_result.warnings)

    def default_dimensions(self) -> DimensionSet:
        return DimensionSet(
            thickness=self.default_thickness,
            width=self.default_width,
            length=self.default_length,
            pieces_per_bundle=self.default_pieces_per_bundle,
        )

    def module_status(self) -> dict[str, bool]:
        return {name: getattr(self, flag) for name, flag in _MODULE_FLAGS.items()}

    def has_optional_modules(self) -> bool:
        return any(self.module_status().values())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))
