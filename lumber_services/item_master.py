"""
lumber_services.item_master -- Item master lookup and its TTL cache.

Responsibility:
    Answer "what are this item's lumber attributes?" from the ``items``
    table (SqlItemMaster) or from memory (InMemoryItemMaster), behind an
    explicit ItemCache with a time-to-live and invalidation.

Architecture position:
    Services -- stateful lookups.  Consumed by the dimension resolver and
    the yield service.

Invariants enforced:
    - Cache entries expire ``ttl_seconds`` after they were loaded, measured
      on the injected clock.
    - Misses are not cached: an item created after a miss is visible on
      the next lookup.

Failure modes:
    - ItemNotFoundError from ``require`` when the item does not exist.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.orm import Session

from lumber_kernel.domain.clock import Clock, SystemClock
from lumber_kernel.domain.items import ItemRecord
from lumber_kernel.exceptions import ItemNotFoundError
from lumber_kernel.logging_config import get_logger
from lumber_kernel.models.item import ItemModel

logger = get_logger("services.item_master")

DEFAULT_ITEM_CACHE_TTL_SECONDS = 300


@runtime_checkable
class ItemMaster(Protocol):
    """Read access to item lumber attributes."""

    def get(self, item_id: str) -> ItemRecord | None:
        ...


class SqlItemMaster:
    """Item master backed by the ``items`` table."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, item_id: str) -> ItemRecord | None:
        stmt = select(ItemModel).where(ItemModel.item_id == item_id)
        model = self.session.execute(stmt).scalars().first()
        return model.to_record() if model is not None else None

    def save(self, record: ItemRecord) -> ItemRecord:
        """Insert or update the row for ``record.item_id``."""
        stmt = select(ItemModel).where(ItemModel.item_id == record.item_id)
        model = self.session.execute(stmt).scalars().first()
        if model is None:
            model = ItemModel(item_id=record.item_id)
            self.session.add(model)
        model.display_name = record.display_name
        model.is_lumber = record.is_lumber
        model.nominal_thickness = record.nominal.thickness or None
        model.nominal_width = record.nominal.width or None
        model.nominal_length = record.nominal.length or None
        model.pieces_per_bundle = record.nominal.pieces_per_bundle
        model.allow_dynamic_dims = record.allow_dynamic_dims
        model.default_yield_pct = record.default_yield_pct
        model.default_waste_pct = record.default_waste_pct
        model.species = record.species
        model.grade = record.grade
        self.session.flush()
        logger.info("item_saved", extra={"item_id": record.item_id})
        return model.to_record()


class InMemoryItemMaster:
    """Item master over a dict; used by tests and offline tools."""

    def __init__(self, records: Iterable[ItemRecord] = ()):
        self._records: dict[str, ItemRecord] = {r.item_id: r for r in records}

    def get(self, item_id: str) -> ItemRecord | None:
        return self._records.get(item_id)

    def save(self, record: ItemRecord) -> ItemRecord:
        self._records[record.item_id] = record
        return record


@dataclass
class _CacheEntry:
    record: ItemRecord
    loaded_at: float


class ItemCache:
    """
    TTL cache in front of an ItemMaster.

    Contract:
        Owned by the component that uses it (normally the dimension
        resolver); never a module-level global.
    """

    def __init__(
        self,
        master: ItemMaster,
        ttl_seconds: int = DEFAULT_ITEM_CACHE_TTL_SECONDS,
        clock: Clock | None = None,
    ):
        self.master = master
        self.ttl_seconds = ttl_seconds
        self._clock = clock or SystemClock()
        self._entries: dict[str, _CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, item_id: str) -> ItemRecord | None:
        now = self._clock.monotonic()
        entry = self._entries.get(item_id)
        if entry is not None and now - entry.loaded_at < self.ttl_seconds:
            self.hits += 1
            return entry.record

        self.misses += 1
        record = self.master.get(item_id)
        if record is None:
            self._entries.pop(item_id, None)
            return None
        self._entries[item_id] = _CacheEntry(record=record, loaded_at=now)
        return record

    def require(self, item_id: str) -> ItemRecord:
        record = self.get(item_id)
        if record is None:
            raise ItemNotFoundError(item_id)
        return record

    def invalidate(self, item_id: str) -> None:
        self._entries.pop(item_id, None)

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.debug("item_cache_cleared", extra={"entries": count})

    def __len__(self) -> int:
        return len(self._entries)
