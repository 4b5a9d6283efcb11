"""
Tests for the board-foot calculator.

Covers:
- Board feet per piece and per unit helpers
- Half-away-from-zero rounding
- Missing / non-positive dimensions yield zero
- Yield application and waste breakdown
- Whole-piece quantity checks
"""

from decimal import Decimal

import pytest

from lumber_engines.bf_calculator import (
    apply_yield,
    bf_from_linear_feet,
    bf_from_mbf,
    bf_from_msf,
    bf_from_pieces,
    bf_from_square_feet,
    bf_per_linear_foot,
    bf_per_square_foot,
    calculate_bf,
    calculate_bf_from_inches,
    calculate_waste,
    conversion_factors,
    linear_feet_from_bf,
    mbf_from_bf,
    msf_from_bf,
    pieces_from_bf,
    round_to,
    square_feet_from_bf,
    surface_measure,
    validate_bf_quantity,
)
from lumber_kernel.domain.values import DimensionSet


class TestCalculateBF:
    """Tests for board feet per piece."""

    def test_two_by_four_by_eight(self):
        """2in x 4in x 8ft = 64/12 BF."""
        bf = calculate_bf(Decimal("2"), Decimal("4"), Decimal("8"))

        assert round_to(bf, 4) == Decimal("5.3333")

    def test_one_by_twelve_by_one_is_one_board_foot(self):
        assert calculate_bf(1, 12, 1) == Decimal("1")

    def test_accepts_strings_and_floats(self):
        assert calculate_bf("2", 6.0, "12") == Decimal("12")

    @pytest.mark.parametrize(
        "thickness,width,length",
        [
            (0, 4, 8),
            (2, 0, 8),
            (2, 4, 0),
            (-2, 4, 8),
            (None, 4, 8),
            ("abc", 4, 8),
        ],
    )
    def test_missing_or_non_positive_dimension_is_zero(self, thickness, width, length):
        assert calculate_bf(thickness, width, length) == Decimal("0")

    def test_length_in_inches(self):
        """2 x 4 x 96in is the same board as 2 x 4 x 8ft."""
        assert calculate_bf_from_inches(2, 4, 96) == calculate_bf(2, 4, 8)


class TestRoundTo:
    """Tests for the single sanctioned rounding function."""

    def test_rounds_half_up(self):
        assert round_to(Decimal("2.345"), 2) == Decimal("2.35")

    def test_rounds_half_away_from_zero_for_negatives(self):
        assert round_to(Decimal("-2.345"), 2) == Decimal("-2.35")

    def test_zero_precision(self):
        assert round_to(Decimal("2.5"), 0) == Decimal("3")

    def test_default_precision_is_four(self):
        assert round_to(Decimal("1") / Decimal("3")) == Decimal("0.3333")

    def test_none_rounds_to_zero(self):
        assert round_to(None, 2) == Decimal("0.00")


class TestUnitHelpers:
    """Tests for per-unit board-foot helpers."""

    def test_bf_per_linear_foot(self):
        assert bf_per_linear_foot(1, 6) == Decimal("0.5")

    def test_bf_per_square_foot(self):
        assert bf_per_square_foot(2) == Decimal("2") / Decimal("12")

    def test_linear_feet_round_trip(self):
        assert linear_feet_from_bf(bf_from_linear_feet(10, 1, 6), 1, 6) == Decimal("10")

    def test_linear_feet_without_dimensions_is_zero(self):
        assert linear_feet_from_bf(100, 0, 6) == Decimal("0")

    def test_square_feet(self):
        assert round_to(bf_from_square_feet(12, 1), 4) == Decimal("1.0000")
        assert round_to(square_feet_from_bf(Decimal("2"), 2), 4) == Decimal("12.0000")
        assert square_feet_from_bf(10, 0) == Decimal("0")

    def test_mbf(self):
        assert bf_from_mbf(Decimal("1.5")) == Decimal("1500")
        assert mbf_from_bf(Decimal("2500")) == Decimal("2.5")

    def test_msf(self):
        assert round_to(bf_from_msf(1, 1), 4) == Decimal("83.3333")
        assert msf_from_bf(Decimal("1000"), 12) == Decimal("1")

    def test_pieces(self):
        dims = DimensionSet.of(2, 6, 12)
        assert bf_from_pieces(10, dims) == Decimal("120")
        assert pieces_from_bf(Decimal("120"), dims) == Decimal("10")

    def test_pieces_with_incomplete_dimensions_is_zero(self):
        assert pieces_from_bf(100, DimensionSet.of(2, 6, None)) == Decimal("0")

    def test_surface_measure(self):
        assert surface_measure(6, 10) == Decimal("5")


class TestConversionFactors:
    def test_complete_dimensions(self):
        factors = conversion_factors(DimensionSet.of(2, 6, 12))

        assert factors.bf_per_piece == Decimal("12")
        assert factors.bf_per_linear_foot == Decimal("1")
        assert factors.square_feet_per_piece == Decimal("6")
        assert factors.cubic_feet_per_piece == Decimal("1")

    def test_incomplete_dimensions(self):
        factors = conversion_factors(DimensionSet.of(2, None, None))

        assert factors.bf_per_piece == Decimal("0")
        assert factors.cubic_feet_per_piece == Decimal("0")
        assert factors.bf_per_square_foot > Decimal("0")


class TestYieldAndWaste:
    """Tests for yield application and waste breakdown."""

    def test_apply_yield(self):
        assert apply_yield(Decimal("100"), Decimal("90")) == Decimal("90")

    @pytest.mark.parametrize("pct", [None, 0, -5, 150, "junk"])
    def test_invalid_yield_is_treated_as_hundred_percent(self, pct):
        assert apply_yield(Decimal("100"), pct) == Decimal("100")

    def test_waste_breakdown(self):
        breakdown = calculate_waste(Decimal("100"), Decimal("85"))

        assert breakdown.waste_bf == Decimal("15")
        assert breakdown.yield_pct == Decimal("85.00")
        assert breakdown.waste_pct == Decimal("15.00")

    def test_waste_never_negative(self):
        assert calculate_waste(Decimal("80"), Decimal("100")).waste_bf == Decimal("0")

    def test_zero_consumption(self):
        breakdown = calculate_waste(0, 0)

        assert breakdown.yield_pct == Decimal("0")
        assert breakdown.waste_pct == Decimal("0")


class TestValidateBFQuantity:
    def test_whole_number_of_pieces(self):
        check = validate_bf_quantity(Decimal("120"), DimensionSet.of(2, 6, 12))

        assert check.implied_pieces == Decimal("10")
        assert check.is_whole_number

    def test_fractional_pieces(self):
        check = validate_bf_quantity(Decimal("125"), DimensionSet.of(2, 6, 12))

        assert not check.is_whole_number

    def test_incomplete_dimensions(self):
        check = validate_bf_quantity(Decimal("125"), DimensionSet.of(2, 6))

        assert check.implied_pieces == Decimal("0")
        assert not check.is_whole_number
