"""
Tests for engine initialization and the transactional scope.

Covers:
- session_scope commits on success, rolls back and re-raises on error
- Accessors refuse to work before init_engine_from_url
"""

import pytest

from lumber_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from lumber_kernel.domain.items import ItemRecord
from lumber_services.item_master import SqlItemMaster


@pytest.fixture
def fresh_engine():
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield
    drop_tables()
    reset_engine()


class TestSessionScope:
    def test_commits_on_success(self, fresh_engine):
        with session_scope() as session:
            SqlItemMaster(session).save(ItemRecord(item_id="2X4-SPF", is_lumber=True))

        check = get_session()
        try:
            assert SqlItemMaster(check).get("2X4-SPF").is_lumber
        finally:
            check.close()

    def test_rolls_back_and_reraises(self, fresh_engine):
        with pytest.raises(RuntimeError, match="abort"):
            with session_scope() as session:
                SqlItemMaster(session).save(ItemRecord(item_id="2X4-SPF"))
                raise RuntimeError("abort")

        check = get_session()
        try:
            assert SqlItemMaster(check).get("2X4-SPF") is None
        finally:
            check.close()


class TestUninitialized:
    def test_get_engine(self):
        reset_engine()

        with pytest.raises(RuntimeError, match="not initialized"):
            get_engine()

    def test_get_session(self):
        reset_engine()

        with pytest.raises(RuntimeError, match="not initialized"):
            get_session()
