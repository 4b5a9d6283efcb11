"""
Values -- Immutable, self-validating lumber value objects.

Responsibility:
    Provides the value types every conversion and allocation works with:
    UnitCode (the closed set of selling units), DimensionSet (thickness,
    width, length, pieces per bundle) and DimensionSource (where a resolved
    dimension came from).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines, services and batch tasks.

Invariants enforced:
    - Quantities and dimensions are Decimal, never float.
    - A DimensionSet is complete iff thickness, width and length are all
      strictly positive; pieces_per_bundle is always >= 1.
    - UnitCode is closed: BF, LF, SF, MBF, MSF, EACH, BUNDLE.

Failure modes:
    - ValueError on construction with non-numeric dimension values.
    - ValueError from UnitCode.parse on an unknown unit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

# Display / persistence precision (decimal places)
BF_PRECISION = 4
PERCENTAGE_PRECISION = 2
CURRENCY_PRECISION = 2
FACTOR_PRECISION = 6
DIMENSION_PRECISION = 3

ZERO = Decimal("0")
ONE = Decimal("1")
TWELVE = Decimal("12")
ONE_HUNDRED = Decimal("100")
ONE_THOUSAND = Decimal("1000")


def parse_decimal(value: Any, default: Decimal | None = None) -> Decimal | None:
    """Lenient numeric parse: None, blanks and junk yield ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, str) and not value.strip():
        return default
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    return parsed if parsed.is_finite() else default


class UnitCode(str, Enum):
    """Selling units of measure.  BF is canonical."""

    BF = "BF"
    LF = "LF"
    SF = "SF"
    MBF = "MBF"
    MSF = "MSF"
    EACH = "EACH"
    BUNDLE = "BUNDLE"

    @property
    def label(self) -> str:
        return _UNIT_LABELS[self]

    @property
    def required_dimensions(self) -> tuple[str, ...]:
        """Dimension fields that must be positive to convert this unit."""
        return _REQUIRED_DIMENSIONS[self]

    @property
    def requires_dimensions(self) -> bool:
        return bool(_REQUIRED_DIMENSIONS[self])

    @classmethod
    def parse(cls, code: str | UnitCode) -> UnitCode:
        """
        Resolve a unit code string (case-insensitive).

        Raises:
            ValueError: If the code is not one of the known units.
        """
        if isinstance(code, UnitCode):
            return code
        try:
            return cls(str(code).strip().upper())
        except ValueError:
            raise ValueError(f"Invalid UOM code: {code}") from None

    @classmethod
    def is_valid(cls, code: Any) -> bool:
        try:
            cls.parse(code)
        except ValueError:
            return False
        return True


_UNIT_LABELS: dict[UnitCode, str] = {
    UnitCode.BF: "Board Feet",
    UnitCode.LF: "Linear Feet",
    UnitCode.SF: "Square Feet",
    UnitCode.MBF: "Thousand Board Feet",
    UnitCode.MSF: "Thousand Square Feet",
    UnitCode.EACH: "Each",
    UnitCode.BUNDLE: "Bundle",
}

_REQUIRED_DIMENSIONS: dict[UnitCode, tuple[str, ...]] = {
    UnitCode.BF: (),
    UnitCode.MBF: (),
    UnitCode.LF: ("thickness", "width"),
    UnitCode.SF: ("thickness",),
    UnitCode.MSF: ("thickness",),
    UnitCode.EACH: ("thickness", "width", "length"),
    UnitCode.BUNDLE: ("thickness", "width", "length", "pieces_per_bundle"),
}


class DimensionSource(str, Enum):
    """Layer that supplied a resolved dimension."""

    LINE = "line"
    TALLY = "tally"
    ITEM = "item"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class DimensionSet:
    """
    Physical dimensions of one piece of lumber.

    Contract:
        thickness and width in inches, length in feet.  Zero means
        "not known"; an incomplete set still exists so callers can report
        which dimension is missing.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - all spatial values are Decimal
        - pieces_per_bundle >= 1

    Non-goals:
        - Does NOT compute board feet (see lumber_engines.bf_calculator)
        - Does NOT range-check against plausible lumber sizes
          (see lumber_engines.dimensions.validate_dimensions)
    """

    thickness: Decimal = ZERO
    width: Decimal = ZERO
    length: Decimal = ZERO
    pieces_per_bundle: int = 1

    def __post_init__(self) -> None:
        for name in ("thickness", "width", "length"):
            raw = getattr(self, name)
            if not isinstance(raw, Decimal):
                try:
                    object.__setattr__(self, name, Decimal(str(raw)))
                except (InvalidOperation, ValueError) as e:
                    raise ValueError(f"Invalid {name}: {raw}") from e
        try:
            ppb = int(self.pieces_per_bundle)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Invalid pieces_per_bundle: {self.pieces_per_bundle}"
            ) from e
        object.__setattr__(self, "pieces_per_bundle", ppb if ppb >= 1 else 1)

    @classmethod
    def of(
        cls,
        thickness: Any = None,
        width: Any = None,
        length: Any = None,
        pieces_per_bundle: Any = None,
    ) -> DimensionSet:
        """Lenient factory: missing or unparseable values become zero."""
        ppb = parse_decimal(pieces_per_bundle, ONE)
        return cls(
            thickness=parse_decimal(thickness, ZERO),
            width=parse_decimal(width, ZERO),
            length=parse_decimal(length, ZERO),
            pieces_per_bundle=int(ppb) if ppb >= 1 else 1,
        )

    @classmethod
    def empty(cls) -> DimensionSet:
        return cls()

    @property
    def has_thickness(self) -> bool:
        return self.thickness > ZERO

    @property
    def has_width(self) -> bool:
        return self.width > ZERO

    @property
    def has_length(self) -> bool:
        return self.length > ZERO

    @property
    def is_complete(self) -> bool:
        return self.has_thickness and self.has_width and self.has_length

    def supports(self, unit: UnitCode) -> bool:
        """True when every dimension ``unit`` needs is present."""
        for name in unit.required_dimensions:
            if name == "pieces_per_bundle":
                continue
            if getattr(self, name) <= ZERO:
                return False
        return True

    def as_dict(self) -> dict[str, str | int]:
        return {
            "thickness": str(self.thickness),
            "width": str(self.width),
            "length": str(self.length),
            "pieces_per_bundle": self.pieces_per_bundle,
        }
