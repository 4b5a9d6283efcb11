"""
lumber_engines.conversion -- Dimension-aware unit-of-measure conversion.

Responsibility:
    Convert quantities between board feet (the canonical inventory unit)
    and the six selling units (LF, SF, MBF, MSF, EACH, BUNDLE), compose
    conversions between any two units through board feet, and build the
    conversion-factor matrix shown next to a dimension set.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports lumber_engines.bf_calculator and lumber_kernel.domain.values.
    Consumed by services (yield, tally), batch jobs and callers that convert
    transaction lines.

Invariants enforced:
    - Factor definition: "board feet per one source unit".
        BF 1 | MBF 1000 | LF t*w/12 | SF t/12 | MSF t/12*1000 |
        EACH bf-per-piece | BUNDLE bf-per-piece * pieces-per-bundle
    - BF and MBF need no dimensions.  BF is the identity for every
      quantity: a BF leg returns the input unrounded.
    - A zero or missing quantity is a valid zero result and never checks
      dimension requirements.
    - Factors are applied at full precision; only returned quantities are
      rounded (to ``bf_precision``), so convert_between(u, convert_between(
      v, x, u), v) returns x within half a unit of the last place.

Failure modes:
    - None raised.  An unknown unit or a missing required dimension
      returns ``valid=False`` with ``error`` set; callers must check
      ``valid`` before using ``board_feet`` or ``display_qty``.

Usage:
    from lumber_engines.conversion import ConversionEngine
    from lumber_kernel.domain.values import DimensionSet, UnitCode

    engine = ConversionEngine()
    result = engine.convert_to_canonical(
        UnitCode.BUNDLE, Decimal("3"), DimensionSet.of(2, 4, 8, 50),
    )
    result.board_feet  # Decimal("800.0000")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from lumber_engines.bf_calculator import (
    bf_per_linear_foot,
    bf_per_piece,
    bf_per_square_foot,
    round_to,
)
from lumber_engines.tracer import traced_engine
from lumber_kernel.domain.values import (
    BF_PRECISION,
    FACTOR_PRECISION,
    ONE,
    ONE_THOUSAND,
    ZERO,
    DimensionSet,
    UnitCode,
    parse_decimal,
)
from lumber_kernel.logging_config import get_logger

logger = get_logger("engines.conversion")

DESCRIPTION_PRECISION = 4


@dataclass(frozen=True)
class ConversionResult:
    """
    Outcome of a single-leg conversion.

    For to-canonical conversions ``display_qty`` echoes the source quantity;
    for from-canonical conversions ``board_feet`` echoes the input.
    """

    valid: bool
    unit: UnitCode | None
    board_feet: Decimal = ZERO
    display_qty: Decimal = ZERO
    conversion_factor: Decimal = ZERO
    error: str | None = None

    @classmethod
    def invalid(cls, unit: UnitCode | None, error: str) -> ConversionResult:
        return cls(valid=False, unit=unit, error=error)


@dataclass(frozen=True)
class BetweenResult:
    """Outcome of a two-leg conversion through board feet."""

    valid: bool
    source_unit: UnitCode | None
    target_unit: UnitCode | None
    source_qty: Decimal
    result: Decimal = ZERO
    intermediary_bf: Decimal = ZERO
    total_conversion_factor: Decimal = ZERO
    error: str | None = None


@dataclass(frozen=True)
class ConversionMatrix:
    """Every unit's factor for one dimension set (None where impossible)."""

    dimensions: DimensionSet
    bf_per_piece: Decimal
    to_bf: dict[UnitCode, Decimal | None] = field(default_factory=dict)
    from_bf: dict[UnitCode, Decimal | None] = field(default_factory=dict)
    descriptions: dict[UnitCode, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UnitAvailability:
    """Whether a unit can be used with a dimension set."""

    code: UnitCode
    label: str
    available: bool
    requires_dimensions: bool
    required_dims: tuple[str, ...] = ()


def _missing_dimension_error(unit: UnitCode) -> str:
    if unit is UnitCode.LF:
        return "Thickness and width required for LF conversion"
    if unit in (UnitCode.SF, UnitCode.MSF):
        return f"Thickness required for {unit.value} conversion"
    return f"All dimensions required for {unit.value} conversion"


def _format_quantity(value: Decimal) -> str:
    """Rounded display without trailing zeros, e.g. 0.6667 or 5.3333."""
    text = format(round_to(value, DESCRIPTION_PRECISION).normalize(), "f")
    return text


class ConversionEngine:
    """
    Pure converter between board feet and selling units.

    Contract:
        No I/O, no database access, fully deterministic.  Dimensions are
        passed in already resolved (see lumber_services.dimension_resolver).
    Guarantees:
        - ``convert_to_canonical`` and ``convert_from_canonical`` use the
          same factor definition, so they are exact inverses before rounding.
        - ``convert_between`` reports the first failing leg's error.
        - Conversion failures are returned, never raised.
    Non-goals:
        - Does not resolve dimensions or read settings.
        - Does not validate that dimensions are plausible lumber sizes.
    """

    def __init__(self, bf_precision: int | None = BF_PRECISION):
        """
        Args:
            bf_precision: Decimal places for returned quantities.  None
                returns full-precision quantities (used by round-trip checks).
        """
        self.bf_precision = bf_precision

    # =========================================================================
    # Factors
    # =========================================================================

    def factor_for(self, unit: UnitCode, dims: DimensionSet) -> Decimal | None:
        """Board feet per one ``unit``; None when ``dims`` cannot support it."""
        if unit is UnitCode.BF:
            return ONE
        if unit is UnitCode.MBF:
            return ONE_THOUSAND
        if unit is UnitCode.LF:
            factor = bf_per_linear_foot(dims.thickness, dims.width)
        elif unit is UnitCode.SF:
            factor = bf_per_square_foot(dims.thickness)
        elif unit is UnitCode.MSF:
            factor = bf_per_square_foot(dims.thickness) * ONE_THOUSAND
        elif unit is UnitCode.EACH:
            factor = bf_per_piece(dims)
        else:
            factor = bf_per_piece(dims) * dims.pieces_per_bundle
        return factor if factor > ZERO else None

    def _round(self, value: Decimal, precision: int | None = None) -> Decimal:
        places = precision if precision is not None else self.bf_precision
        if places is None:
            return value
        return round_to(value, places)

    def _round_factor(self, factor: Decimal) -> Decimal:
        if self.bf_precision is None:
            return factor
        return round_to(factor, FACTOR_PRECISION)

    @staticmethod
    def _parse_unit(code: Any) -> tuple[UnitCode | None, str | None]:
        try:
            return UnitCode.parse(code), None
        except ValueError as exc:
            return None, str(exc)

    # =========================================================================
    # Single-leg conversions
    # =========================================================================

    @traced_engine("conversion", "1.0", fingerprint_fields=("source_unit", "source_qty", "dims"))
    def convert_to_canonical(
        self,
        source_unit: UnitCode | str,
        source_qty: Decimal | int | str | None,
        dims: DimensionSet,
    ) -> ConversionResult:
        """
        Convert ``source_qty`` of ``source_unit`` into board feet.

        Preconditions:
            ``dims`` is a resolved DimensionSet (may be incomplete).
        Postconditions:
            ``valid`` is False only for an unknown unit or when the unit's
            required dimensions are missing.  ``board_feet`` is rounded to
            ``bf_precision`` except for BF, which passes through exactly;
            ``conversion_factor`` to FACTOR_PRECISION.

        Returns:
            ConversionResult.
        """
        unit, error = self._parse_unit(source_unit)
        if unit is None:
            logger.warning("conversion_invalid_unit", extra={"unit": str(source_unit)})
            return ConversionResult.invalid(None, error)

        qty = parse_decimal(source_qty, ZERO)
        if qty == ZERO:
            return ConversionResult(valid=True, unit=unit)

        factor = self.factor_for(unit, dims)
        if factor is None:
            message = _missing_dimension_error(unit)
            logger.info("conversion_dimensions_missing", extra={
                "unit": unit.value,
                "direction": "to_bf",
                **dims.as_dict(),
            })
            return ConversionResult.invalid(unit, message)

        board_feet = qty if unit is UnitCode.BF else self._round(qty * factor)
        return ConversionResult(
            valid=True,
            unit=unit,
            board_feet=board_feet,
            display_qty=qty,
            conversion_factor=self._round_factor(factor),
        )

    @traced_engine("conversion", "1.0", fingerprint_fields=("canonical_qty", "target_unit", "dims"))
    def convert_from_canonical(
        self,
        canonical_qty: Decimal | int | str | None,
        target_unit: UnitCode | str,
        dims: DimensionSet,
    ) -> ConversionResult:
        """
        Convert board feet into ``target_unit`` (mirror of
        ``convert_to_canonical``; division by the same factor).
        """
        unit, error = self._parse_unit(target_unit)
        if unit is None:
            logger.warning("conversion_invalid_unit", extra={"unit": str(target_unit)})
            return ConversionResult.invalid(None, error)

        bf = parse_decimal(canonical_qty, ZERO)
        if bf == ZERO:
            return ConversionResult(valid=True, unit=unit)

        factor = self.factor_for(unit, dims)
        if factor is None:
            logger.info("conversion_dimensions_missing", extra={
                "unit": unit.value,
                "direction": "from_bf",
                **dims.as_dict(),
            })
            return ConversionResult.invalid(unit, _missing_dimension_error(unit))

        display_qty = bf if unit is UnitCode.BF else self._round(bf / factor)
        return ConversionResult(
            valid=True,
            unit=unit,
            board_feet=bf,
            display_qty=display_qty,
            conversion_factor=self._round_factor(factor),
        )

    @traced_engine("conversion", "1.0", fingerprint_fields=("source_unit", "source_qty", "target_unit", "dims"))
    def convert_between(
        self,
        source_unit: UnitCode | str,
        source_qty: Decimal | int | str | None,
        target_unit: UnitCode | str,
        dims: DimensionSet,
    ) -> BetweenResult:
        """
        Convert through board feet: source -> BF -> target.

        The intermediate board feet are carried at full precision; only the
        final result and the reported intermediary are rounded.  Fails with
        the first failing leg's error.
        """
        qty = parse_decimal(source_qty, ZERO)
        src, error = self._parse_unit(source_unit)
        if src is None:
            return BetweenResult(False, None, None, qty, error=error)
        tgt, error = self._parse_unit(target_unit)
        if tgt is None:
            return BetweenResult(False, src, None, qty, error=error)

        if qty == ZERO:
            return BetweenResult(True, src, tgt, qty)

        src_factor = self.factor_for(src, dims)
        if src_factor is None:
            return BetweenResult(False, src, tgt, qty, error=_missing_dimension_error(src))
        tgt_factor = self.factor_for(tgt, dims)
        if tgt_factor is None:
            return BetweenResult(False, src, tgt, qty, error=_missing_dimension_error(tgt))

        intermediary = qty * src_factor
        total_factor = src_factor / tgt_factor
        return BetweenResult(
            valid=True,
            source_unit=src,
            target_unit=tgt,
            source_qty=qty,
            result=self._round(intermediary / tgt_factor),
            intermediary_bf=self._round(intermediary),
            total_conversion_factor=self._round_factor(total_factor),
        )

    # =========================================================================
    # Reference data
    # =========================================================================

    @traced_engine("conversion", "1.0", fingerprint_fields=("dims",))
    def build_conversion_matrix(self, dims: DimensionSet) -> ConversionMatrix:
        """
        Factors and one-line descriptions for every unit.

        ``to_bf`` and ``from_bf`` hold the same factor (multiply to get
        board feet, divide to leave them); None where ``dims`` is
        insufficient for the unit.
        """
        factors = {unit: self.factor_for(unit, dims) for unit in UnitCode}
        per_piece = bf_per_piece(dims)

        def describe(unit: UnitCode, requirement: str) -> str:
            factor = factors[unit]
            if factor is None:
                return requirement
            label = {UnitCode.EACH: "PC"}.get(unit, unit.value)
            if unit is UnitCode.BUNDLE:
                label = f"BDL ({dims.pieces_per_bundle} pcs)"
            return f"1 {label} = {_format_quantity(factor)} BF"

        descriptions = {
            UnitCode.BF: "1 BF = 1 BF",
            UnitCode.LF: describe(UnitCode.LF, "Requires thickness and width"),
            UnitCode.SF: describe(UnitCode.SF, "Requires thickness"),
            UnitCode.MBF: "1 MBF = 1,000 BF",
            UnitCode.MSF: describe(UnitCode.MSF, "Requires thickness"),
            UnitCode.EACH: describe(UnitCode.EACH, "Requires all dimensions"),
            UnitCode.BUNDLE: describe(UnitCode.BUNDLE, "Requires all dimensions"),
        }
        return ConversionMatrix(
            dimensions=dims,
            bf_per_piece=per_piece,
            to_bf=dict(factors),
            from_bf=dict(factors),
            descriptions=descriptions,
        )

    def available_units(self, dims: DimensionSet) -> tuple[UnitAvailability, ...]:
        """Each unit with whether ``dims`` supports it."""
        return tuple(
            UnitAvailability(
                code=unit,
                label=unit.label,
                available=dims.supports(unit),
                requires_dimensions=unit.requires_dimensions,
                required_dims=unit.required_dimensions,
            )
            for unit in UnitCode
        )

    @staticmethod
    def is_valid_unit(code: Any) -> bool:
        return UnitCode.is_valid(code)

    @staticmethod
    def unit_label(code: Any) -> str:
        """Display label for ``code``; unknown codes are echoed back."""
        try:
            return UnitCode.parse(code).label
        except ValueError:
            return str(code)

    def validate_conversion_params(
        self,
        unit: UnitCode | str,
        source_qty: Any,
        dims: DimensionSet,
    ) -> list[str]:
        """Every problem that would stop converting ``source_qty`` of ``unit``."""
        errors: list[str] = []
        if source_qty is None:
            errors.append("Source quantity is required")
        parsed, error = self._parse_unit(unit)
        if parsed is None:
            errors.append(error)
            return errors
        required = parsed.required_dimensions
        if "thickness" in required and not dims.has_thickness:
            errors.append("Thickness is required for this UOM conversion")
        if "width" in required and not dims.has_width:
            errors.append("Width is required for this UOM conversion")
        if "length" in required and not dims.has_length:
            errors.append("Length is required for this UOM conversion")
        return errors
