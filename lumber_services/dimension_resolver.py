"""
lumber_services.dimension_resolver -- Resolve the dimensions a conversion uses.

Responsibility:
    Build the dimension layers for a transaction line (line override,
    tally sheet, item master, system defaults) and merge them with
    ``lumber_engines.dimensions.merge_layers``.

Architecture position:
    Services -- reads the item master (through an owned ItemCache), the
    ``tally_sheets`` table and settings.  The merge itself is pure.

Invariants enforced:
    - Line overrides are honoured only when dynamic UOM is enabled in
      settings AND the item allows dynamic dimensions.
    - Tally dimensions are consulted only when tally sheets are enabled.
    - Item lookups go through the cache; ``invalidate_item`` drops one
      entry, ``clear_cache`` drops all.

Failure modes:
    - None raised for unknown items or tally sheets; the layer is simply
      absent and lower layers fill in.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from lumber_config.provider import SettingsProvider
from lumber_engines.dimensions import (
    DimensionLayer,
    ResolvedDimensions,
    merge_layers,
)
from lumber_kernel.domain.values import DimensionSet, DimensionSource
from lumber_kernel.logging_config import get_logger
from lumber_kernel.models.tally import TallySheetModel
from lumber_services.item_master import ItemCache

logger = get_logger("services.dimension_resolver")

LineOverride = DimensionSet | DimensionLayer | Mapping[str, Any]


def _line_layer(override: LineOverride) -> DimensionLayer:
    if isinstance(override, DimensionLayer):
        return DimensionLayer(
            source=DimensionSource.LINE,
            thickness=override.thickness,
            width=override.width,
            length=override.length,
            pieces_per_bundle=override.pieces_per_bundle,
        )
    if isinstance(override, DimensionSet):
        return DimensionLayer.from_set(DimensionSource.LINE, override)
    return DimensionLayer.of(
        DimensionSource.LINE,
        thickness=override.get("thickness"),
        width=override.get("width"),
        length=override.get("length"),
        pieces_per_bundle=override.get("pieces_per_bundle"),
    )


class DimensionResolver:
    """
    Field-wise dimension resolution: line -> tally -> item -> default.

    Contract:
        Receives a Session, a SettingsProvider and an ItemCache via
        constructor injection.
    Non-goals:
        - Does not convert quantities (see lumber_engines.conversion).
    """

    def __init__(
        self,
        session: Session,
        settings: SettingsProvider,
        item_cache: ItemCache,
    ):
        self.session = session
        self.settings = settings
        self.item_cache = item_cache

    # =========================================================================
    # Layers
    # =========================================================================

    def _item_layer(self, item_id: str | None) -> DimensionLayer | None:
        if not item_id:
            return None
        record = self.item_cache.get(item_id)
        if record is None:
            return None
        return DimensionLayer.from_set(DimensionSource.ITEM, record.nominal)

    def _tally_layer(self, tally_id: UUID | None) -> DimensionLayer | None:
        if tally_id is None:
            return None
        model = self.session.get(TallySheetModel, tally_id)
        if model is None:
            logger.warning("dimension_tally_not_found", extra={"tally_id": str(tally_id)})
            return None
        return DimensionLayer.from_set(DimensionSource.TALLY, model.dimension_set())

    def _default_layer(self) -> DimensionLayer:
        return DimensionLayer.from_set(DimensionSource.DEFAULT, self.system_defaults())

    # =========================================================================
    # Queries
    # =========================================================================

    def resolve(
        self,
        item_id: str,
        tally_id: UUID | None = None,
        line_override: LineOverride | None = None,
    ) -> ResolvedDimensions:
        """
        Dimensions for a transaction line.

        Args:
            item_id: Item on the line.
            tally_id: Tally sheet the line draws from, if any.
            line_override: Dimensions typed on the line, if any.

        Returns:
            ResolvedDimensions with per-field provenance.
        """
        settings = self.settings.get()
        layers: list[DimensionLayer | None] = [self._item_layer(item_id), self._default_layer()]

        if tally_id is not None and settings.tally_enabled:
            layers.append(self._tally_layer(tally_id))

        override_applied = False
        if line_override is not None:
            if settings.dynamic_uom_enabled and self.allows_dynamic_dimension_override(item_id):
                layers.append(_line_layer(line_override))
                override_applied = True
            else:
                logger.info("dimension_line_override_ignored", extra={
                    "item_id": item_id,
                    "dynamic_uom_enabled": settings.dynamic_uom_enabled,
                })

        resolved = merge_layers(layers)
        logger.debug("dimensions_resolved", extra={
            "item_id": item_id,
            "tally_id": str(tally_id) if tally_id else None,
            "source": resolved.source.value,
            "source_label": resolved.source_label,
            "override_applied": override_applied,
            "is_complete": resolved.is_complete,
        })
        return resolved

    def item_dimensions(self, item_id: str) -> ResolvedDimensions:
        """Nominal item dimensions only (no defaults filled in)."""
        return merge_layers([self._item_layer(item_id)])

    def tally_dimensions(self, tally_id: UUID) -> ResolvedDimensions:
        """
        Dimensions recorded on a tally sheet; missing fields come from the
        sheet's item (``source_label`` is then "tally+item").
        """
        model = self.session.get(TallySheetModel, tally_id)
        if model is None:
            return merge_layers([])
        return merge_layers([
            DimensionLayer.from_set(DimensionSource.TALLY, model.dimension_set()),
            self._item_layer(model.item_id),
        ])

    def system_defaults(self) -> DimensionSet:
        return self.settings.get().default_dimensions()

    def is_lumber_item(self, item_id: str | None) -> bool:
        if not item_id:
            return False
        record = self.item_cache.get(item_id)
        return record is not None and record.is_lumber

    def allows_dynamic_dimension_override(self, item_id: str | None) -> bool:
        if not item_id:
            return False
        record = self.item_cache.get(item_id)
        return record is not None and record.allow_dynamic_dims

    # =========================================================================
    # Cache control
    # =========================================================================

    def invalidate_item(self, item_id: str) -> None:
        self.item_cache.invalidate(item_id)

    def clear_cache(self) -> None:
        self.item_cache.clear()
