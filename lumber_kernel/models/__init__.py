"""ORM models for the lumber kernel."""

from lumber_kernel.models.item import ItemModel
from lumber_kernel.models.tally import TallyAllocationModel, TallySheetModel
from lumber_kernel.models.yield_entry import (
    YieldAdjustmentModel,
    YieldAlertModel,
    YieldEntryModel,
)

__all__ = [
    "ItemModel",
    "TallySheetModel",
    "TallyAllocationModel",
    "YieldEntryModel",
    "YieldAdjustmentModel",
    "YieldAlertModel",
]
