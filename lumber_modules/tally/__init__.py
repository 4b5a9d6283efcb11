"""
Tally Module (``lumber_modules.tally``).

Lot and allocation lifecycles.  ``lumber_services.tally_service`` checks
every status change against ``LOT_WORKFLOW`` and ``ALLOCATION_WORKFLOW``.
"""

from lumber_modules.tally.workflows import (
    ALLOCATION_WORKFLOW,
    LOT_WORKFLOW,
    Guard,
    Transition,
    Workflow,
)

__all__ = [
    "ALLOCATION_WORKFLOW",
    "LOT_WORKFLOW",
    "Guard",
    "Transition",
    "Workflow",
]
