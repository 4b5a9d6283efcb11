"""
Tests for the kernel value objects.

Covers:
- parse_decimal leniency
- UnitCode parsing, labels and required dimensions
- DimensionSet coercion, completeness and unit support
"""

from decimal import Decimal

import pytest

from lumber_kernel.domain.values import DimensionSet, UnitCode, parse_decimal


class TestParseDecimal:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12.5", Decimal("12.5")),
            (" 3 ", Decimal("3")),
            (7, Decimal("7")),
            (Decimal("1.25"), Decimal("1.25")),
        ],
    )
    def test_parses(self, raw, expected):
        assert parse_decimal(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "  ", "abc", True, "NaN", Decimal("Infinity")])
    def test_default_for_junk(self, raw):
        assert parse_decimal(raw, Decimal("0")) == Decimal("0")


class TestUnitCode:
    def test_parse_case_insensitive(self):
        assert UnitCode.parse(" mbf ") is UnitCode.MBF

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Invalid UOM code: CORD"):
            UnitCode.parse("CORD")

    def test_is_valid(self):
        assert UnitCode.is_valid("bundle")
        assert not UnitCode.is_valid(None)

    def test_labels(self):
        assert UnitCode.BF.label == "Board Feet"
        assert UnitCode.MSF.label == "Thousand Square Feet"

    def test_required_dimensions(self):
        assert not UnitCode.MBF.requires_dimensions
        assert UnitCode.LF.required_dimensions == ("thickness", "width")
        assert "pieces_per_bundle" in UnitCode.BUNDLE.required_dimensions


class TestDimensionSet:
    def test_values_coerced_to_decimal(self):
        dims = DimensionSet(2, "4", 8.0)

        assert dims.thickness == Decimal("2")
        assert isinstance(dims.width, Decimal)
        assert dims.is_complete

    def test_pieces_per_bundle_floor(self):
        assert DimensionSet(1, 1, 1, 0).pieces_per_bundle == 1

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            DimensionSet("wide", 4, 8)

    def test_lenient_factory(self):
        dims = DimensionSet.of("2", None, "junk", None)

        assert dims == DimensionSet(Decimal("2"), Decimal("0"), Decimal("0"), 1)
        assert not dims.is_complete

    def test_supports(self):
        partial = DimensionSet.of(thickness=1)

        assert partial.supports(UnitCode.SF)
        assert not partial.supports(UnitCode.LF)
        assert DimensionSet.of(2, 4, 8).supports(UnitCode.BUNDLE)

    def test_hashable(self):
        assert len({DimensionSet.of(2, 4, 8), DimensionSet.of(2, 4, 8)}) == 1

    def test_as_dict(self):
        assert DimensionSet.of(2, 4, 8, 50).as_dict() == {
            "thickness": "2",
            "width": "4",
            "length": "8",
            "pieces_per_bundle": 50,
        }
