"""
Pytest fixtures for the lumber core test suite.

Provides:
- In-memory SQLite sessions (one engine per test, SAVEPOINT-capable)
- Deterministic clock, item master and settings fixtures
- Structured log capture

Environment Variables:
- DATABASE_URL: optional database URL.  Defaults to in-memory SQLite so the
  suite runs without a database server.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from lumber_config.provider import SettingsProvider
from lumber_config.schema import LumberSettings
from lumber_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from lumber_kernel.domain.clock import DeterministicClock
from lumber_kernel.domain.items import ItemRecord
from lumber_kernel.domain.values import DimensionSet
from lumber_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from lumber_services.item_master import InMemoryItemMaster, ItemCache
from lumber_services.tally_service import TallyService
from lumber_services.yield_service import YieldService

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

# Fixed "now" for every test: 2024-03-15 12:00 UTC
TEST_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)
TEST_TODAY = TEST_NOW.date()


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture lumber_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, tally_service):
            tally_service.allocate_fifo(...)
            logs = captured_logs()
            assert any(r["message"] == "fifo_allocation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("lumber_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Session on a fresh schema.

    The outer transaction is rolled back at teardown; services only open
    SAVEPOINTs inside it.
    """
    init_engine_from_url(get_database_url())
    create_tables()
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()
        drop_tables()
        reset_engine()


# =============================================================================
# Clock and settings fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def lumber_settings() -> LumberSettings:
    """Tally, yield and waste tracking switched on."""
    return LumberSettings(
        yield_enabled=True,
        waste_enabled=True,
        tally_enabled=True,
    )


@pytest.fixture
def settings_provider(lumber_settings, deterministic_clock) -> SettingsProvider:
    return SettingsProvider.fixed(lumber_settings, clock=deterministic_clock)


# =============================================================================
# Item master fixtures
# =============================================================================


@pytest.fixture
def item_records() -> list[ItemRecord]:
    return [
        ItemRecord(
            item_id="2X4-SPF",
            is_lumber=True,
            nominal=DimensionSet(Decimal("2"), Decimal("4"), Decimal("8"), 50),
            allow_dynamic_dims=True,
            default_yield_pct=Decimal("90"),
            default_waste_pct=Decimal("10"),
            species="SPF",
            grade="#2",
        ),
        ItemRecord(
            item_id="1X6-PINE",
            is_lumber=True,
            nominal=DimensionSet(Decimal("1"), Decimal("6"), Decimal("10")),
            allow_dynamic_dims=False,
            species="Pine",
        ),
        ItemRecord(item_id="NAILS-16D", is_lumber=False),
    ]


@pytest.fixture
def item_master(item_records) -> InMemoryItemMaster:
    return InMemoryItemMaster(item_records)


@pytest.fixture
def item_cache(item_master, deterministic_clock) -> ItemCache:
    return ItemCache(item_master, ttl_seconds=300, clock=deterministic_clock)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def tally_service(session, settings_provider, deterministic_clock) -> TallyService:
    return TallyService(session, settings_provider, clock=deterministic_clock)


@pytest.fixture
def yield_service(session, settings_provider, item_cache, deterministic_clock) -> YieldService:
    return YieldService(session, settings_provider, item_cache=item_cache, clock=deterministic_clock)


@pytest.fixture
def create_lot(tally_service):
    """Factory fixture: receive a lot of 2X4-SPF at YARD-1 unless overridden."""

    def _create(
        received_bf: Decimal | str | int,
        received_date: date = TEST_TODAY,
        tally_number: str | None = None,
        item_id: str = "2X4-SPF",
        location_id: str = "YARD-1",
        **kwargs,
    ):
        result = tally_service.create_tally_sheet(
            item_id=item_id,
            location_id=location_id,
            received_bf=Decimal(str(received_bf)),
            received_date=received_date,
            tally_number=tally_number,
            subsidiary_id=kwargs.pop("subsidiary_id", "SUB-1"),
            **kwargs,
        )
        assert result.success, result.error
        return result.value

    return _create
