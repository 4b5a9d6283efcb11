"""
lumber_engines.bf_calculator -- Board-foot geometry and rounding.

Responsibility:
    Pure geometric arithmetic for lumber: board feet per piece from
    nominal dimensions, the per-unit helpers (linear feet, square feet,
    MBF, MSF, pieces), yield application, waste breakdown and the single
    sanctioned rounding function ``round_to``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import lumber_kernel.domain.values.
    Consumed by the conversion engine, the yield calculator and services.

Invariants enforced:
    - Board foot definition: thickness(in) x width(in) x length(ft) / 12.
    - Decimal-only arithmetic; floats are converted through ``str``.
    - ``round_to`` rounds half away from zero (ROUND_HALF_UP) and is the
      only rounding used for persisted or displayed quantities.
    - Factors are returned at full precision; callers round outputs only,
      so chained conversions do not accumulate rounding error.

Failure modes:
    - None.  Missing, non-numeric or non-positive dimensions yield
      Decimal("0") instead of raising; callers are responsible for
      validating dimensions they require.

Usage:
    from lumber_engines.bf_calculator import calculate_bf, round_to

    bf = calculate_bf(Decimal("2"), Decimal("4"), Decimal("8"))  # 5.333...
    round_to(bf, 4)  # Decimal("5.3333")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from lumber_kernel.domain.values import (
    BF_PRECISION,
    ONE_HUNDRED,
    ONE_THOUSAND,
    PERCENTAGE_PRECISION,
    TWELVE,
    ZERO,
    DimensionSet,
    parse_decimal,
)

CUBIC_INCHES_PER_CUBIC_FOOT = Decimal("1728")
SQUARE_INCHES_PER_BOARD_FOOT = Decimal("144")
WHOLE_PIECE_TOLERANCE = Decimal("0.001")


def _positive(value: Any) -> Decimal:
    """Parse ``value``; anything missing or not strictly positive becomes 0."""
    parsed = parse_decimal(value, ZERO)
    return parsed if parsed > ZERO else ZERO


def round_to(value: Any, precision: int = BF_PRECISION) -> Decimal:
    """
    Round to ``precision`` decimal places, half away from zero.

    Preconditions:
        precision >= 0.
    Postconditions:
        Returns a Decimal quantized to ``precision`` places.  None or
        unparseable input returns zero at that precision.
    """
    parsed = parse_decimal(value, ZERO)
    quantum = Decimal(1).scaleb(-precision)
    return parsed.quantize(quantum, rounding=ROUND_HALF_UP)


# =============================================================================
# Per-piece geometry
# =============================================================================


def calculate_bf(thickness: Any, width: Any, length: Any) -> Decimal:
    """
    Board feet in one piece: thickness(in) x width(in) x length(ft) / 12.

    Returns Decimal("0") when any dimension is missing or not positive.
    """
    t, w, l = _positive(thickness), _positive(width), _positive(length)
    if t == ZERO or w == ZERO or l == ZERO:
        return ZERO
    return (t * w * l) / TWELVE


def calculate_bf_from_inches(thickness: Any, width: Any, length_inches: Any) -> Decimal:
    """Board feet with the length given in inches: t x w x l / 144."""
    t, w, l = _positive(thickness), _positive(width), _positive(length_inches)
    if t == ZERO or w == ZERO or l == ZERO:
        return ZERO
    return (t * w * l) / SQUARE_INCHES_PER_BOARD_FOOT


def bf_per_piece(dims: DimensionSet) -> Decimal:
    return calculate_bf(dims.thickness, dims.width, dims.length)


def bf_per_linear_foot(thickness: Any, width: Any) -> Decimal:
    """Board feet in one running foot of a t x w profile."""
    t, w = _positive(thickness), _positive(width)
    if t == ZERO or w == ZERO:
        return ZERO
    return (t * w) / TWELVE


def bf_per_square_foot(thickness: Any) -> Decimal:
    """Board feet in one square foot of surface at thickness t."""
    t = _positive(thickness)
    if t == ZERO:
        return ZERO
    return t / TWELVE


def surface_measure(width: Any, length: Any) -> Decimal:
    """Square feet of face per piece: width(in) x length(ft) / 12."""
    w, l = _positive(width), _positive(length)
    if w == ZERO or l == ZERO:
        return ZERO
    return (w * l) / TWELVE


# =============================================================================
# Unit helpers
# =============================================================================


def bf_from_linear_feet(linear_feet: Any, thickness: Any, width: Any) -> Decimal:
    return parse_decimal(linear_feet, ZERO) * bf_per_linear_foot(thickness, width)


def linear_feet_from_bf(board_feet: Any, thickness: Any, width: Any) -> Decimal:
    factor = bf_per_linear_foot(thickness, width)
    if factor == ZERO:
        return ZERO
    return parse_decimal(board_feet, ZERO) / factor


def bf_from_square_feet(square_feet: Any, thickness: Any) -> Decimal:
    return parse_decimal(square_feet, ZERO) * bf_per_square_foot(thickness)


def square_feet_from_bf(board_feet: Any, thickness: Any) -> Decimal:
    factor = bf_per_square_foot(thickness)
    if factor == ZERO:
        return ZERO
    return parse_decimal(board_feet, ZERO) / factor


def bf_from_mbf(mbf: Any) -> Decimal:
    return parse_decimal(mbf, ZERO) * ONE_THOUSAND


def mbf_from_bf(board_feet: Any) -> Decimal:
    return parse_decimal(board_feet, ZERO) / ONE_THOUSAND


def bf_from_msf(msf: Any, thickness: Any) -> Decimal:
    return parse_decimal(msf, ZERO) * ONE_THOUSAND * bf_per_square_foot(thickness)


def msf_from_bf(board_feet: Any, thickness: Any) -> Decimal:
    return square_feet_from_bf(board_feet, thickness) / ONE_THOUSAND


def bf_from_pieces(pieces: Any, dims: DimensionSet) -> Decimal:
    return parse_decimal(pieces, ZERO) * bf_per_piece(dims)


def pieces_from_bf(board_feet: Any, dims: DimensionSet) -> Decimal:
    per_piece = bf_per_piece(dims)
    if per_piece == ZERO:
        return ZERO
    return parse_decimal(board_feet, ZERO) / per_piece


# =============================================================================
# Derived measures
# =============================================================================


@dataclass(frozen=True)
class ConversionFactors:
    """Per-piece measures for a dimension set (full precision)."""

    bf_per_piece: Decimal
    bf_per_linear_foot: Decimal
    bf_per_square_foot: Decimal
    square_feet_per_piece: Decimal
    cubic_feet_per_piece: Decimal


def conversion_factors(dims: DimensionSet) -> ConversionFactors:
    """All per-piece factors for ``dims``; zero where a dimension is missing."""
    cubic_feet = ZERO
    if dims.is_complete:
        cubic_feet = (
            dims.thickness * dims.width * dims.length * TWELVE
        ) / CUBIC_INCHES_PER_CUBIC_FOOT
    return ConversionFactors(
        bf_per_piece=bf_per_piece(dims),
        bf_per_linear_foot=bf_per_linear_foot(dims.thickness, dims.width),
        bf_per_square_foot=bf_per_square_foot(dims.thickness),
        square_feet_per_piece=surface_measure(dims.width, dims.length),
        cubic_feet_per_piece=cubic_feet,
    )


def apply_yield(board_feet: Any, yield_pct: Any) -> Decimal:
    """
    Usable output from ``board_feet`` of input at ``yield_pct``.

    A missing or out-of-range yield (not in (0, 100]) is treated as 100%.
    """
    bf = parse_decimal(board_feet, ZERO)
    pct = parse_decimal(yield_pct)
    if pct is None or pct <= ZERO or pct > ONE_HUNDRED:
        return bf
    return bf * pct / ONE_HUNDRED


@dataclass(frozen=True)
class WasteBreakdown:
    """Consumed vs recovered board feet."""

    consumed_bf: Decimal
    output_bf: Decimal
    waste_bf: Decimal
    yield_pct: Decimal
    waste_pct: Decimal


def calculate_waste(consumed_bf: Any, output_bf: Any) -> WasteBreakdown:
    """
    Waste as the complement of recovered output: consumed - output.

    Percentages are rounded to PERCENTAGE_PRECISION; zero consumption gives
    zero percentages.
    """
    consumed = parse_decimal(consumed_bf, ZERO)
    output = parse_decimal(output_bf, ZERO)
    waste = max(ZERO, consumed - output)
    if consumed <= ZERO:
        return WasteBreakdown(consumed, output, waste, ZERO, ZERO)
    return WasteBreakdown(
        consumed_bf=consumed,
        output_bf=output,
        waste_bf=waste,
        yield_pct=round_to(output / consumed * ONE_HUNDRED, PERCENTAGE_PRECISION),
        waste_pct=round_to(waste / consumed * ONE_HUNDRED, PERCENTAGE_PRECISION),
    )


@dataclass(frozen=True)
class BFQuantityCheck:
    """How a board-foot quantity maps onto whole pieces."""

    board_feet: Decimal
    bf_per_piece: Decimal
    implied_pieces: Decimal
    is_whole_number: bool


def validate_bf_quantity(board_feet: Any, dims: DimensionSet) -> BFQuantityCheck:
    """
    Number of pieces ``board_feet`` represents and whether that is a whole
    count (within WHOLE_PIECE_TOLERANCE).  Incomplete dimensions report
    zero pieces and ``is_whole_number=False``.
    """
    bf = parse_decimal(board_feet, ZERO)
    per_piece = bf_per_piece(dims)
    if per_piece == ZERO:
        return BFQuantityCheck(bf, ZERO, ZERO, False)
    implied = bf / per_piece
    nearest = implied.to_integral_value(rounding=ROUND_HALF_UP)
    return BFQuantityCheck(
        board_feet=bf,
        bf_per_piece=per_piece,
        implied_pieces=implied,
        is_whole_number=abs(implied - nearest) <= WHOLE_PIECE_TOLERANCE,
    )
