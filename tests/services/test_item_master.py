"""
Tests for the item master and its TTL cache.

Covers:
- SqlItemMaster save / get round trip through the items table
- Cache hits within the TTL, reload after it
- Misses are not cached
- Explicit invalidation
"""

from decimal import Decimal

import pytest

from lumber_kernel.domain.items import ItemRecord
from lumber_kernel.domain.values import DimensionSet
from lumber_kernel.exceptions import ItemNotFoundError
from lumber_services.item_master import InMemoryItemMaster, ItemCache, SqlItemMaster


class TestSqlItemMaster:
    def test_save_and_get(self, session, item_records):
        master = SqlItemMaster(session)

        master.save(item_records[0])
        record = master.get("2X4-SPF")

        assert record.is_lumber
        assert record.nominal == DimensionSet.of(2, 4, 8, 50)
        assert record.allow_dynamic_dims
        assert record.default_yield_pct == Decimal("90")

    def test_save_updates_existing(self, session, item_records):
        master = SqlItemMaster(session)
        master.save(item_records[0])

        master.save(ItemRecord(item_id="2X4-SPF", is_lumber=True, default_yield_pct=Decimal("80")))

        record = master.get("2X4-SPF")
        assert record.default_yield_pct == Decimal("80")
        assert not record.nominal.is_complete

    def test_unknown_item(self, session):
        assert SqlItemMaster(session).get("NOPE") is None


class TestItemCache:
    def setup_method(self):
        self.master = InMemoryItemMaster([ItemRecord(item_id="2X4-SPF", is_lumber=True)])

    def test_hit_within_ttl(self, deterministic_clock):
        cache = ItemCache(self.master, ttl_seconds=60, clock=deterministic_clock)

        cache.get("2X4-SPF")
        deterministic_clock.advance(30)
        cache.get("2X4-SPF")

        assert cache.misses == 1
        assert cache.hits == 1

    def test_reload_after_ttl(self, deterministic_clock):
        cache = ItemCache(self.master, ttl_seconds=60, clock=deterministic_clock)
        cache.get("2X4-SPF")
        self.master.save(ItemRecord(item_id="2X4-SPF", is_lumber=False))

        assert cache.get("2X4-SPF").is_lumber
        deterministic_clock.advance(60)
        assert not cache.get("2X4-SPF").is_lumber

    def test_misses_are_not_cached(self, deterministic_clock):
        cache = ItemCache(self.master, clock=deterministic_clock)

        assert cache.get("NEW") is None
        self.master.save(ItemRecord(item_id="NEW"))

        assert cache.get("NEW") is not None

    def test_invalidate(self, deterministic_clock):
        cache = ItemCache(self.master, clock=deterministic_clock)
        cache.get("2X4-SPF")

        cache.invalidate("2X4-SPF")

        assert len(cache) == 0

    def test_clear(self, deterministic_clock):
        cache = ItemCache(self.master, clock=deterministic_clock)
        cache.get("2X4-SPF")

        cache.clear()

        assert len(cache) == 0

    def test_require_unknown(self, deterministic_clock):
        cache = ItemCache(self.master, clock=deterministic_clock)

        with pytest.raises(ItemNotFoundError):
            cache.require("NOPE")
