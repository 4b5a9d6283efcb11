"""
Items -- Item master value object.

The attributes the lumber core reads from the item master: whether an item
is lumber, its nominal dimensions, whether lines may override them, and its
default yield and waste percentages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from lumber_kernel.domain.values import DimensionSet


@dataclass(frozen=True)
class ItemRecord:
    """Snapshot of one item master row."""

    item_id: str
    is_lumber: bool = False
    nominal: DimensionSet = field(default_factory=DimensionSet)
    allow_dynamic_dims: bool = False
    default_yield_pct: Decimal | None = None
    default_waste_pct: Decimal | None = None
    species: str | None = None
    grade: str | None = None
    display_name: str | None = None
