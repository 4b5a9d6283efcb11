"""
Tests for the conversion engine.

Covers:
- Conversion to and from board feet for every unit
- Missing dimensions return invalid results (never raise)
- Zero quantity short-circuit
- Two-leg conversion through board feet
- Conversion matrix and unit availability
- Round-trip property at full precision
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lumber_engines.conversion import ConversionEngine
from lumber_kernel.domain.values import DimensionSet, UnitCode


TWO_BY_FOUR_BUNDLE = DimensionSet.of(2, 4, 8, 50)


class TestConvertToCanonical:
    """Tests for selling unit -> board feet."""

    def setup_method(self):
        self.engine = ConversionEngine()

    def test_board_feet_is_identity(self):
        result = self.engine.convert_to_canonical(UnitCode.BF, Decimal("125.5"), DimensionSet.empty())

        assert result.valid
        assert result.board_feet == Decimal("125.5000")
        assert result.conversion_factor == Decimal("1")

    def test_board_feet_keep_every_digit(self):
        to_bf = self.engine.convert_to_canonical("BF", Decimal("1.23456"), DimensionSet.empty())
        from_bf = self.engine.convert_from_canonical(Decimal("1.23456"), "BF", DimensionSet.empty())

        assert to_bf.board_feet == Decimal("1.23456")
        assert from_bf.display_qty == Decimal("1.23456")

    def test_mbf_needs_no_dimensions(self):
        result = self.engine.convert_to_canonical("MBF", Decimal("2.5"), DimensionSet.empty())

        assert result.valid
        assert result.board_feet == Decimal("2500.0000")

    def test_linear_feet(self):
        """10 LF of 1x6 is 10 x 0.5 BF."""
        result = self.engine.convert_to_canonical(UnitCode.LF, Decimal("10"), DimensionSet.of(1, 6))

        assert result.valid
        assert result.board_feet == Decimal("5.0000")
        assert result.conversion_factor == Decimal("0.5")
        assert result.display_qty == Decimal("10")

    def test_square_feet(self):
        result = self.engine.convert_to_canonical(UnitCode.SF, Decimal("120"), DimensionSet.of(1))

        assert result.valid
        assert result.board_feet == Decimal("10.0000")

    def test_msf(self):
        result = self.engine.convert_to_canonical(UnitCode.MSF, Decimal("1.2"), DimensionSet.of(1))

        assert result.board_feet == Decimal("100.0000")

    def test_each(self):
        result = self.engine.convert_to_canonical(UnitCode.EACH, Decimal("12"), DimensionSet.of(2, 4, 8))

        assert result.board_feet == Decimal("64.0000")
        assert result.conversion_factor == Decimal("5.333333")

    def test_bundle(self):
        """3 bundles of 50 2x4x8 = 150 pieces x 5.3333 BF."""
        result = self.engine.convert_to_canonical(UnitCode.BUNDLE, Decimal("3"), TWO_BY_FOUR_BUNDLE)

        assert result.valid
        assert result.board_feet == Decimal("800.0000")
        assert result.conversion_factor == Decimal("266.666667")

    def test_unit_code_is_case_insensitive(self):
        assert self.engine.convert_to_canonical("lf", 10, DimensionSet.of(1, 6)).valid

    def test_missing_dimensions_is_invalid(self):
        result = self.engine.convert_to_canonical("LF", Decimal("5"), DimensionSet.of(0, 0, 0))

        assert not result.valid
        assert "required" in result.error
        assert result.board_feet == Decimal("0")

    @pytest.mark.parametrize(
        "unit,dims",
        [
            (UnitCode.SF, DimensionSet.of(None, 6, 8)),
            (UnitCode.MSF, DimensionSet.of(None, 6, 8)),
            (UnitCode.EACH, DimensionSet.of(2, 4)),
            (UnitCode.BUNDLE, DimensionSet.of(2, None, 8, 50)),
        ],
    )
    def test_each_unit_reports_its_missing_dimensions(self, unit, dims):
        result = self.engine.convert_to_canonical(unit, Decimal("1"), dims)

        assert not result.valid
        assert "required" in result.error
        assert result.unit is unit

    @pytest.mark.parametrize("qty", [0, None, "", "0.0"])
    def test_zero_quantity_is_valid_without_dimensions(self, qty):
        result = self.engine.convert_to_canonical(UnitCode.EACH, qty, DimensionSet.empty())

        assert result.valid
        assert result.board_feet == Decimal("0")

    def test_unknown_unit(self):
        result = self.engine.convert_to_canonical("CORD", Decimal("1"), TWO_BY_FOUR_BUNDLE)

        assert not result.valid
        assert result.unit is None
        assert "Invalid UOM code" in result.error

    def test_respects_configured_precision(self):
        engine = ConversionEngine(bf_precision=2)

        result = engine.convert_to_canonical(UnitCode.EACH, Decimal("1"), DimensionSet.of(2, 4, 8))

        assert result.board_feet == Decimal("5.33")


class TestConvertFromCanonical:
    """Tests for board feet -> selling unit."""

    def setup_method(self):
        self.engine = ConversionEngine()

    def test_linear_feet(self):
        result = self.engine.convert_from_canonical(Decimal("5"), UnitCode.LF, DimensionSet.of(1, 6))

        assert result.valid
        assert result.display_qty == Decimal("10.0000")
        assert result.board_feet == Decimal("5")

    def test_bundles(self):
        result = self.engine.convert_from_canonical(Decimal("800"), UnitCode.BUNDLE, TWO_BY_FOUR_BUNDLE)

        assert result.display_qty == Decimal("3.0000")

    def test_mbf(self):
        result = self.engine.convert_from_canonical(Decimal("1250"), "MBF", DimensionSet.empty())

        assert result.display_qty == Decimal("1.2500")

    def test_missing_dimensions(self):
        result = self.engine.convert_from_canonical(Decimal("5"), UnitCode.EACH, DimensionSet.of(2))

        assert not result.valid
        assert result.error == "All dimensions required for EACH conversion"


class TestConvertBetween:
    """Tests for two-leg conversion through board feet."""

    def setup_method(self):
        self.engine = ConversionEngine()

    def test_linear_feet_to_pieces(self):
        """8 LF of 2x4 is one 8 ft piece."""
        result = self.engine.convert_between(UnitCode.LF, Decimal("8"), UnitCode.EACH, DimensionSet.of(2, 4, 8))

        assert result.valid
        assert result.result == Decimal("1.0000")
        assert result.intermediary_bf == Decimal("5.3333")
        assert result.total_conversion_factor == Decimal("0.125")

    def test_bundles_to_mbf(self):
        result = self.engine.convert_between("BUNDLE", 3, "MBF", TWO_BY_FOUR_BUNDLE)

        assert result.result == Decimal("0.8000")

    def test_reports_first_failing_leg(self):
        result = self.engine.convert_between(UnitCode.EACH, 5, UnitCode.LF, DimensionSet.of(2, None, 8))

        assert not result.valid
        assert result.error == "All dimensions required for EACH conversion"

    def test_target_leg_failure(self):
        result = self.engine.convert_between(UnitCode.BF, 5, UnitCode.LF, DimensionSet.of(2))

        assert not result.valid
        assert result.error == "Thickness and width required for LF conversion"

    def test_unknown_target_unit(self):
        result = self.engine.convert_between(UnitCode.BF, 5, "XX", DimensionSet.empty())

        assert not result.valid
        assert result.source_unit is UnitCode.BF
        assert result.target_unit is None

    def test_zero_quantity(self):
        result = self.engine.convert_between(UnitCode.EACH, 0, UnitCode.LF, DimensionSet.empty())

        assert result.valid
        assert result.result == Decimal("0")


class TestConversionMatrix:
    """Tests for the reference conversion matrix."""

    def setup_method(self):
        self.engine = ConversionEngine()

    def test_descriptions(self):
        matrix = self.engine.build_conversion_matrix(DimensionSet.of(1, 8, 10, 20))

        assert matrix.descriptions[UnitCode.LF] == "1 LF = 0.6667 BF"
        assert matrix.descriptions[UnitCode.BF] == "1 BF = 1 BF"
        assert matrix.descriptions[UnitCode.MBF] == "1 MBF = 1,000 BF"
        assert matrix.descriptions[UnitCode.BUNDLE].startswith("1 BDL (20 pcs) = ")

    def test_unsupported_units_are_none(self):
        matrix = self.engine.build_conversion_matrix(DimensionSet.of(1))

        assert matrix.to_bf[UnitCode.EACH] is None
        assert matrix.from_bf[UnitCode.LF] is None
        assert matrix.to_bf[UnitCode.SF] is not None
        assert matrix.descriptions[UnitCode.EACH] == "Requires all dimensions"
        assert matrix.descriptions[UnitCode.LF] == "Requires thickness and width"

    def test_available_units(self):
        available = {
            u.code: u.available for u in self.engine.available_units(DimensionSet.of(1, 6))
        }

        assert available[UnitCode.BF]
        assert available[UnitCode.LF]
        assert not available[UnitCode.EACH]

    def test_validate_conversion_params(self):
        errors = self.engine.validate_conversion_params("EACH", Decimal("5"), DimensionSet.of(2, None, 8))

        assert errors == ["Width is required for this UOM conversion"]

    def test_unit_labels(self):
        assert self.engine.unit_label("lf") == "Linear Feet"
        assert self.engine.unit_label("CORD") == "CORD"
        assert ConversionEngine.is_valid_unit("bundle")
        assert not ConversionEngine.is_valid_unit("CORD")


class TestConversionRoundTrip:
    """Property: to_canonical then from_canonical returns the input."""

    @settings(max_examples=75, deadline=None)
    @given(
        unit=st.sampled_from(list(UnitCode)),
        qty=st.decimals(min_value=Decimal("0.0001"), max_value=Decimal("100000"), places=4),
        thickness=st.decimals(min_value=Decimal("0.25"), max_value=Decimal("12"), places=2),
        width=st.decimals(min_value=Decimal("1"), max_value=Decimal("48"), places=2),
        length=st.decimals(min_value=Decimal("1"), max_value=Decimal("40"), places=1),
        pieces=st.integers(min_value=1, max_value=500),
    )
    def test_round_trip_at_full_precision(self, unit, qty, thickness, width, length, pieces):
        engine = ConversionEngine(bf_precision=None)
        dims = DimensionSet(thickness, width, length, pieces)

        to_bf = engine.convert_to_canonical(unit, qty, dims)
        back = engine.convert_from_canonical(to_bf.board_feet, unit, dims)

        assert to_bf.valid and back.valid
        assert abs(back.display_qty - qty) <= Decimal("1E-12")
