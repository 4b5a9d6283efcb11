"""
Tests for layered dimension merging.

Covers:
- Priority line -> tally -> item -> default, independent of input order
- Field-wise resolution (partial overrides)
- Provenance (source, field_sources, resolution path, source label)
- Plausible-range validation (warnings, not errors)
- Display formatting
"""

from decimal import Decimal

from lumber_engines.dimensions import (
    DimensionLayer,
    format_dimensions,
    merge_layers,
    validate_dimensions,
)
from lumber_kernel.domain.values import DimensionSet, DimensionSource


def _item_layer():
    return DimensionLayer.of(DimensionSource.ITEM, 2, 4, 8, 50)


def _default_layer():
    return DimensionLayer.from_set(DimensionSource.DEFAULT, DimensionSet.of(1, 12, 8))


class TestMergeLayers:
    """Tests for merge priority and field-wise resolution."""

    def test_item_beats_default(self):
        resolved = merge_layers([_default_layer(), _item_layer()])

        assert resolved.dimensions == DimensionSet.of(2, 4, 8, 50)
        assert resolved.source is DimensionSource.ITEM
        assert resolved.is_complete

    def test_partial_line_override_inherits_other_fields(self):
        """A line that supplies only width keeps thickness and length from the item."""
        line = DimensionLayer.of(DimensionSource.LINE, width=6)

        resolved = merge_layers([_item_layer(), line, _default_layer()])

        assert resolved.thickness == Decimal("2")
        assert resolved.width == Decimal("6")
        assert resolved.length == Decimal("8")
        assert resolved.source is DimensionSource.LINE
        assert resolved.field_sources["width"] is DimensionSource.LINE
        assert resolved.field_sources["thickness"] is DimensionSource.ITEM
        assert resolved.source_label == "line+item"

    def test_order_of_layers_does_not_matter(self):
        tally = DimensionLayer.of(DimensionSource.TALLY, length=12)
        forward = merge_layers([tally, _item_layer(), _default_layer()])
        backward = merge_layers([_default_layer(), _item_layer(), tally])

        assert forward == backward
        assert forward.length == Decimal("12")

    def test_tally_beats_item(self):
        tally = DimensionLayer.of(DimensionSource.TALLY, 2, 6, 16)

        resolved = merge_layers([_item_layer(), tally])

        assert resolved.dimensions.width == Decimal("6")
        assert resolved.source is DimensionSource.TALLY
        # pieces per bundle still comes from the item
        assert resolved.pieces_per_bundle == 50
        assert resolved.field_sources["pieces_per_bundle"] is DimensionSource.ITEM

    def test_zero_and_negative_values_are_not_supplied(self):
        line = DimensionLayer.of(DimensionSource.LINE, 0, -4, None)

        resolved = merge_layers([line, _item_layer()])

        assert resolved.dimensions == DimensionSet.of(2, 4, 8, 50)
        assert resolved.source is DimensionSource.ITEM

    def test_default_fills_missing_item_fields(self):
        item = DimensionLayer.of(DimensionSource.ITEM, thickness=2)

        resolved = merge_layers([item, _default_layer()])

        assert resolved.dimensions == DimensionSet.of(2, 12, 8)
        assert resolved.resolution_path == (DimensionSource.DEFAULT, DimensionSource.ITEM)

    def test_no_layers_is_incomplete(self):
        resolved = merge_layers([None, None])

        assert not resolved.is_complete
        assert resolved.source is DimensionSource.DEFAULT
        assert resolved.error == "Incomplete dimensions"

    def test_unit_pieces_per_bundle_does_not_mask_lower_layer(self):
        line = DimensionLayer.from_set(DimensionSource.LINE, DimensionSet.of(2, 4, 10))

        resolved = merge_layers([line, _item_layer()])

        assert resolved.pieces_per_bundle == 50
        assert resolved.length == Decimal("10")


class TestValidateDimensions:
    """Tests for plausible lumber ranges."""

    def test_typical_lumber_is_clean(self):
        result = validate_dimensions(DimensionSet.of(2, 4, 8))

        assert result.is_valid
        assert not result.has_warnings

    def test_out_of_range_values_are_warnings(self):
        result = validate_dimensions(DimensionSet.of(14, 50, 45))

        assert result.is_valid
        assert len(result.warnings) == 3

    def test_missing_dimension_is_an_error(self):
        result = validate_dimensions(DimensionSet.of(2, 0, 8))

        assert not result.is_valid
        assert result.errors == ("Width must be greater than 0",)

    def test_unusually_thin_and_narrow(self):
        result = validate_dimensions(DimensionSet.of("0.125", "0.5", 8))

        assert result.is_valid
        assert len(result.warnings) == 2

    def test_accepts_resolved_dimensions(self):
        assert validate_dimensions(merge_layers([_item_layer()])).is_valid


class TestFormatDimensions:
    def test_standard(self):
        assert format_dimensions(DimensionSet.of(2, 4, 8)) == "2\" x 4\" x 8'"

    def test_compact(self):
        assert format_dimensions(DimensionSet.of("1.5", "3.5", 8), "compact") == "1.5\"x3.5\"x8'"

    def test_full(self):
        assert format_dimensions(DimensionSet.of(2, 4, 8), "full") == "2\" thick x 4\" wide x 8' long"

    def test_incomplete(self):
        assert format_dimensions(DimensionSet.of(2, 4)) == "N/A"
        assert format_dimensions(None) == "N/A"
