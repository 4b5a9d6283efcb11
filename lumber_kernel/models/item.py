"""
Module: lumber_kernel.models.item
Responsibility: ORM persistence for the lumber attributes of the item master.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value objects only.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from lumber_kernel.db.base import TrackedBase
from lumber_kernel.domain.items import ItemRecord
from lumber_kernel.domain.values import DimensionSet


class ItemModel(TrackedBase):
    """Lumber attributes of one item, keyed by the external item_id."""

    __tablename__ = "items"

    item_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_lumber: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    nominal_thickness: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    nominal_width: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    nominal_length: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    pieces_per_bundle: Mapped[int | None] = mapped_column(Integer, nullable=True)
    allow_dynamic_dims: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    default_yield_pct: Mapped[Decimal | None] = mapped_column(Numeric(9, 2), nullable=True)
    default_waste_pct: Mapped[Decimal | None] = mapped_column(Numeric(9, 2), nullable=True)

    species: Mapped[str | None] = mapped_column(String(50), nullable=True)
    grade: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def to_record(self) -> ItemRecord:
        return ItemRecord(
            item_id=self.item_id,
            display_name=self.display_name,
            is_lumber=bool(self.is_lumber),
            nominal=DimensionSet.of(
                self.nominal_thickness,
                self.nominal_width,
                self.nominal_length,
                self.pieces_per_bundle,
            ),
            allow_dynamic_dims=bool(self.allow_dynamic_dims),
            default_yield_pct=self.default_yield_pct,
            default_waste_pct=self.default_waste_pct,
            species=self.species,
            grade=self.grade,
        )
