"""
lumber_services -- stateful services over the lumber engines.

Each service receives a SQLAlchemy Session and a SettingsProvider by
constructor injection and owns no module-level state.

    ItemCache / SqlItemMaster   item master lookups with a TTL cache
    DimensionResolver           line -> tally -> item -> default dimensions
    TallyService                lot balances, FIFO allocation, lot lifecycle
    YieldService                yield register, waste analysis, alerts
"""

from lumber_services.dimension_resolver import DimensionResolver
from lumber_services.item_master import (
    InMemoryItemMaster,
    ItemCache,
    ItemMaster,
    SqlItemMaster,
)
from lumber_services.tally_service import (
    LineAllocation,
    TallyService,
    WorkOrderAllocation,
    WorkOrderLine,
)
from lumber_services.yield_service import WasteByReason, YieldService

__all__ = [
    "DimensionResolver",
    "InMemoryItemMaster",
    "ItemCache",
    "ItemMaster",
    "SqlItemMaster",
    "LineAllocation",
    "TallyService",
    "WorkOrderAllocation",
    "WorkOrderLine",
    "WasteByReason",
    "YieldService",
]
