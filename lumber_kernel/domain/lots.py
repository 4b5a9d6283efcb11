"""
Lots -- Tally sheet and allocation value objects.

Responsibility:
    Immutable snapshots of tally sheets (lots of received lumber) and of the
    allocations that reserve or consume them.  ORM rows convert to these via
    ``to_dto()`` so engines and callers never hold a live Session object.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - 0 <= allocated_bf <= remaining_bf <= received_bf for every snapshot
      produced by the tally service.  available_bf is derived, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from lumber_kernel.domain.values import ZERO, DimensionSet


class LotStatus(str, Enum):
    """Lifecycle status of a tally sheet."""

    DRAFT = "draft"  # Entered, not yet receivable
    OPEN = "open"  # Untouched balance available
    PARTIAL = "partial"  # Some board feet consumed
    ALLOCATED = "allocated"  # Open allocations reserve part of the balance
    CONSUMED = "consumed"  # Remaining balance is zero
    CLOSED = "closed"  # Administratively closed, frozen
    VOID = "void"  # Entered in error, frozen

    @property
    def is_frozen(self) -> bool:
        return self in (LotStatus.CLOSED, LotStatus.VOID)

    @property
    def is_available(self) -> bool:
        """Statuses whose balance may be drawn by FIFO allocation."""
        return self in (LotStatus.OPEN, LotStatus.PARTIAL, LotStatus.ALLOCATED)


class AllocationStatus(str, Enum):
    """Lifecycle status of an allocation record."""

    ALLOCATED = "allocated"
    CONSUMED = "consumed"
    RELEASED = "released"


@dataclass(frozen=True)
class TallySheet:
    """Snapshot of one lot."""

    tally_id: UUID
    tally_number: str
    item_id: str
    location_id: str
    received_bf: Decimal
    remaining_bf: Decimal
    allocated_bf: Decimal
    status: LotStatus
    received_date: date
    subsidiary_id: str | None = None
    dimensions: DimensionSet = field(default_factory=DimensionSet)
    piece_count: int | None = None
    grade: str | None = None
    moisture_pct: Decimal | None = None
    vendor_lot: str | None = None
    bundle_id: str | None = None
    version: int = 1

    @property
    def available_bf(self) -> Decimal:
        return max(ZERO, self.remaining_bf - self.allocated_bf)

    @property
    def consumed_bf(self) -> Decimal:
        return self.received_bf - self.remaining_bf


@dataclass(frozen=True)
class TallyAllocation:
    """Snapshot of one allocation of a lot to a demand."""

    allocation_id: UUID
    tally_id: UUID
    demand_id: str | None
    allocated_bf: Decimal
    consumed_bf: Decimal
    status: AllocationStatus
    allocation_date: date
    demand_line_id: str | None = None
    item_id: str | None = None


@dataclass(frozen=True)
class LotDraw:
    """Board feet taken from one lot by a FIFO walk."""

    tally_id: UUID
    tally_number: str
    amount_bf: Decimal
    lot_available_before: Decimal
    received_date: date
    allocation_id: UUID | None = None

    @property
    def lot_available_after(self) -> Decimal:
        return self.lot_available_before - self.amount_bf


@dataclass(frozen=True)
class FifoAllocationResult:
    """
    Outcome of a FIFO walk.

    Allocation is best effort: a positive ``shortfall`` means the demand was
    only partly covered, and is reported here rather than raised.
    """

    item_id: str
    required_bf: Decimal
    draws: tuple[LotDraw, ...] = ()
    total_allocated: Decimal = ZERO
    shortfall: Decimal = ZERO
    demand_id: str | None = None

    @property
    def is_fully_allocated(self) -> bool:
        return self.shortfall <= ZERO

    @property
    def lots_used(self) -> int:
        return len(self.draws)


def derive_lot_status(
    current: LotStatus,
    received_bf: Decimal,
    remaining_bf: Decimal,
    allocated_bf: Decimal,
) -> LotStatus:
    """
    Status implied by a lot's balances.

    Draft, closed and void lots keep their status; otherwise an exhausted
    lot is consumed, a lot with open reservations is allocated, a lot with
    some consumption is partial, and an untouched lot is open.
    """
    if current.is_frozen or current is LotStatus.DRAFT:
        return current
    if remaining_bf <= ZERO:
        return LotStatus.CONSUMED
    if allocated_bf > ZERO:
        return LotStatus.ALLOCATED
    if remaining_bf < received_bf:
        return LotStatus.PARTIAL
    return LotStatus.OPEN
