"""
lumber_engines.dimensions -- Layered dimension merging, validation, display.

Responsibility:
    Merge dimension layers (line override, tally sheet, item master, system
    default) field by field into one ResolvedDimensions, check the result
    against plausible lumber sizes, and format it for display.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The stateful lookup side (item master, tally rows, settings) lives in
    lumber_services.dimension_resolver, which builds the layers and calls
    ``merge_layers``.

Invariants enforced:
    - Priority order is line -> tally -> item -> default regardless of the
      order layers are passed in.
    - Each of thickness, width, length and pieces_per_bundle is resolved
      independently: a layer that supplies only width still inherits the
      other fields from lower layers.
    - Only strictly positive values count as "supplied".
    - ``is_complete`` is True iff the merged thickness, width and length
      are all positive.

Failure modes:
    - None raised.  Validation problems come back in a ValidationResult.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from lumber_kernel.domain.results import ValidationResult
from lumber_kernel.domain.values import (
    ZERO,
    DimensionSet,
    DimensionSource,
    parse_decimal,
)

# Plausible lumber ranges (warnings only)
MAX_THICKNESS_IN = Decimal("12")
MAX_WIDTH_IN = Decimal("48")
MAX_LENGTH_FT = Decimal("40")
MIN_TYPICAL_THICKNESS_IN = Decimal("0.25")
MIN_TYPICAL_WIDTH_IN = Decimal("1")

_PRIORITY: tuple[DimensionSource, ...] = (
    DimensionSource.LINE,
    DimensionSource.TALLY,
    DimensionSource.ITEM,
    DimensionSource.DEFAULT,
)

_SPATIAL_FIELDS = ("thickness", "width", "length")


@dataclass(frozen=True)
class DimensionLayer:
    """
    One source of dimensions.  None (or a non-positive value) means the
    layer does not supply that field.
    """

    source: DimensionSource
    thickness: Decimal | None = None
    width: Decimal | None = None
    length: Decimal | None = None
    pieces_per_bundle: int | None = None

    @classmethod
    def of(
        cls,
        source: DimensionSource,
        thickness: Any = None,
        width: Any = None,
        length: Any = None,
        pieces_per_bundle: Any = None,
    ) -> DimensionLayer:
        ppb = parse_decimal(pieces_per_bundle)
        return cls(
            source=source,
            thickness=parse_decimal(thickness),
            width=parse_decimal(width),
            length=parse_decimal(length),
            pieces_per_bundle=int(ppb) if ppb is not None and ppb >= 1 else None,
        )

    @classmethod
    def from_set(cls, source: DimensionSource, dims: DimensionSet) -> DimensionLayer:
        """
        Layer from a DimensionSet.  Zero fields are not supplied; a
        pieces_per_bundle of 1 is treated as "not set" except on the
        default layer, so it cannot mask a bundle size further down.
        """
        ppb: int | None = dims.pieces_per_bundle
        if ppb == 1 and source is not DimensionSource.DEFAULT:
            ppb = None
        return cls(
            source=source,
            thickness=dims.thickness if dims.has_thickness else None,
            width=dims.width if dims.has_width else None,
            length=dims.length if dims.has_length else None,
            pieces_per_bundle=ppb,
        )

    def supplied(self, name: str) -> Any:
        value = getattr(self, name)
        if value is None:
            return None
        if name == "pieces_per_bundle":
            return value if value >= 1 else None
        return value if value > ZERO else None

    @property
    def supplies_any(self) -> bool:
        return any(
            self.supplied(name) is not None
            for name in (*_SPATIAL_FIELDS, "pieces_per_bundle")
        )


@dataclass(frozen=True)
class ResolvedDimensions:
    """
    Merged dimensions with provenance.

    ``field_sources`` maps every resolved field to the layer that supplied
    it (fields no layer supplied are absent).  ``source`` is the highest-
    priority layer that supplied any field; ``resolution_path`` lists the
    contributing layers from lowest to highest priority.
    """

    dimensions: DimensionSet
    source: DimensionSource
    field_sources: dict[str, DimensionSource] = field(default_factory=dict)
    resolution_path: tuple[DimensionSource, ...] = ()
    error: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.dimensions.is_complete

    @property
    def thickness(self) -> Decimal:
        return self.dimensions.thickness

    @property
    def width(self) -> Decimal:
        return self.dimensions.width

    @property
    def length(self) -> Decimal:
        return self.dimensions.length

    @property
    def pieces_per_bundle(self) -> int:
        return self.dimensions.pieces_per_bundle

    @property
    def source_label(self) -> str:
        """Compact provenance such as "line+item" when layers were mixed."""
        used: list[str] = []
        for source in _PRIORITY:
            if source in self.field_sources.values():
                used.append(source.value)
        return "+".join(used) if used else self.source.value


def merge_layers(layers: Iterable[DimensionLayer | None]) -> ResolvedDimensions:
    """
    Resolve each field from the highest-priority layer that supplies it.

    Layers may be passed in any order and may be None (skipped).  When no
    layer supplies anything the result is an empty, incomplete set tagged
    with the DEFAULT source.
    """
    by_source: dict[DimensionSource, DimensionLayer] = {}
    for layer in layers:
        if layer is not None:
            by_source[layer.source] = layer
    ordered = [by_source[s] for s in _PRIORITY if s in by_source]

    values: dict[str, Any] = {}
    field_sources: dict[str, DimensionSource] = {}
    for name in (*_SPATIAL_FIELDS, "pieces_per_bundle"):
        for layer in ordered:
            value = layer.supplied(name)
            if value is not None:
                values[name] = value
                field_sources[name] = layer.source
                break

    contributing = [layer.source for layer in ordered if layer.source in field_sources.values()]
    winner = contributing[0] if contributing else DimensionSource.DEFAULT
    dims = DimensionSet(
        thickness=values.get("thickness", ZERO),
        width=values.get("width", ZERO),
        length=values.get("length", ZERO),
        pieces_per_bundle=values.get("pieces_per_bundle", 1),
    )
    return ResolvedDimensions(
        dimensions=dims,
        source=winner,
        field_sources=field_sources,
        resolution_path=tuple(reversed(contributing)),
        error=None if dims.is_complete else "Incomplete dimensions",
    )


def validate_dimensions(dims: DimensionSet | ResolvedDimensions) -> ValidationResult:
    """
    Errors for missing or non-positive spatial dimensions; warnings for
    values outside plausible lumber sizes.
    """
    if isinstance(dims, ResolvedDimensions):
        dims = dims.dimensions
    errors: list[str] = []
    warnings: list[str] = []

    for name in _SPATIAL_FIELDS:
        if getattr(dims, name) <= ZERO:
            errors.append(f"{name.capitalize()} must be greater than 0")

    if dims.thickness > MAX_THICKNESS_IN:
        warnings.append(
            f'Thickness {dims.thickness}" exceeds typical lumber thickness of {MAX_THICKNESS_IN}"'
        )
    if dims.width > MAX_WIDTH_IN:
        warnings.append(f'Width {dims.width}" exceeds typical lumber width of {MAX_WIDTH_IN}"')
    if dims.length > MAX_LENGTH_FT:
        warnings.append(f"Length {dims.length}' exceeds typical lumber length of {MAX_LENGTH_FT}'")
    if ZERO < dims.thickness < MIN_TYPICAL_THICKNESS_IN:
        warnings.append(f'Thickness {dims.thickness}" is unusually thin for lumber')
    if ZERO < dims.width < MIN_TYPICAL_WIDTH_IN:
        warnings.append(f'Width {dims.width}" is unusually narrow for lumber')

    return ValidationResult.of(errors, warnings)


def _display(value: Decimal) -> str:
    text = format(value.normalize(), "f")
    return text


def format_dimensions(dims: DimensionSet | ResolvedDimensions | None, style: str = "standard") -> str:
    """
    ``compact`` -> 2"x4"x8', ``full`` -> 2" thick x 4" wide x 8' long,
    anything else -> 2" x 4" x 8'.  Incomplete dimensions render "N/A".
    """
    if isinstance(dims, ResolvedDimensions):
        dims = dims.dimensions
    if dims is None or not dims.is_complete:
        return "N/A"
    t, w, l = _display(dims.thickness), _display(dims.width), _display(dims.length)
    if style == "compact":
        return f"{t}\"x{w}\"x{l}'"
    if style == "full":
        return f"{t}\" thick x {w}\" wide x {l}' long"
    return f"{t}\" x {w}\" x {l}'"
