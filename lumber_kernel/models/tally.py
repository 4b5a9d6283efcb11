"""
Module: lumber_kernel.models.tally
Responsibility: ORM persistence for tally sheets (lots of received lumber) and
    the allocations that reserve or consume them against a demand record
    (work order / transaction line).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value objects only.

Invariants enforced:
    T1 -- remaining_bf starts equal to received_bf and never exceeds it.
    T2 -- allocated_bf is the sum of open allocations and never exceeds
          remaining_bf.  Enforced by the tally service, checked by the
          reconciliation task.
    T3 -- FIFO ordering support.  (item_id, location_id, received_date)
          index backs the oldest-first lot search.
    T4 -- Optimistic concurrency.  ``version`` is the mapper's
          version_id_col; an UPDATE against a stale version raises
          StaleDataError, which the service surfaces as OptimisticLockError.

Failure modes:
    - IntegrityError on a duplicate tally_number.
    - StaleDataError on a concurrent lot update (T4).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from lumber_kernel.db.base import TrackedBase, UUIDString
from lumber_kernel.domain.lots import (
    AllocationStatus,
    LotStatus,
    TallyAllocation,
    TallySheet,
)
from lumber_kernel.domain.values import DimensionSet


class TallySheetModel(TrackedBase):
    """
    Persistent storage for one lot of received lumber.

    Contract:
        Created on receipt with remaining_bf == received_bf.  Only the tally
        service mutates remaining_bf, allocated_bf and status.

    Guarantees:
        - tally_number is unique.
        - version increments on every UPDATE (T4).

    Non-goals:
        - Does not enforce T1/T2 at the database level.
    """

    __tablename__ = "tally_sheets"

    __table_args__ = (
        Index("idx_tally_item_location_date", "item_id", "location_id", "received_date"),
        Index("idx_tally_status", "status"),
    )

    tally_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    location_id: Mapped[str] = mapped_column(String(100), nullable=False)
    subsidiary_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    vendor_lot: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bundle_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    received_bf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    # INVARIANT T1: 0 <= remaining_bf <= received_bf
    remaining_bf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    # INVARIANT T2: 0 <= allocated_bf <= remaining_bf
    allocated_bf: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LotStatus.OPEN.value,
    )
    received_date: Mapped[date] = mapped_column(nullable=False)

    thickness: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    width: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    length: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    pieces_per_bundle: Mapped[int | None] = mapped_column(Integer, nullable=True)
    piece_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    grade: Mapped[str | None] = mapped_column(String(50), nullable=True)
    moisture_pct: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)

    # INVARIANT T4: optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def lot_status(self) -> LotStatus:
        return LotStatus(self.status)

    @property
    def available_bf(self) -> Decimal:
        return max(Decimal("0"), self.remaining_bf - self.allocated_bf)

    def dimension_set(self) -> DimensionSet:
        return DimensionSet.of(
            self.thickness, self.width, self.length, self.pieces_per_bundle,
        )

    def to_dto(self) -> TallySheet:
        return TallySheet(
            tally_id=self.id,
            tally_number=self.tally_number,
            item_id=self.item_id,
            location_id=self.location_id,
            subsidiary_id=self.subsidiary_id,
            received_bf=self.received_bf,
            remaining_bf=self.remaining_bf,
            allocated_bf=self.allocated_bf,
            status=LotStatus(self.status),
            received_date=self.received_date,
            dimensions=self.dimension_set(),
            piece_count=self.piece_count,
            grade=self.grade,
            moisture_pct=self.moisture_pct,
            vendor_lot=self.vendor_lot,
            bundle_id=self.bundle_id,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<TallySheet {self.tally_number} {self.item_id}@{self.location_id} "
            f"{self.remaining_bf}/{self.received_bf} BF {self.status}>"
        )


class TallyAllocationModel(TrackedBase):
    """
    Persistent storage for one allocation of a lot to a demand.

    Contract:
        Status moves allocated -> consumed or allocated -> released.
        Released and consumed rows are kept as history, never deleted.

    Guarantees:
        - allocated_bf > 0 for allocations created by the tally service.
        - consumed_bf is set when the allocation is consumed.
    """

    __tablename__ = "tally_allocations"

    __table_args__ = (
        Index("idx_tally_alloc_tally", "tally_id"),
        Index("idx_tally_alloc_demand", "demand_id", "status"),
    )

    tally_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tally_sheets.id"), nullable=False,
    )
    item_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # Null demand marks an orphaned allocation (flagged by reconciliation)
    demand_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    demand_line_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    allocated_bf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    consumed_bf: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AllocationStatus.ALLOCATED.value,
    )
    allocation_date: Mapped[date] = mapped_column(nullable=False)

    def to_dto(self) -> TallyAllocation:
        return TallyAllocation(
            allocation_id=self.id,
            tally_id=self.tally_id,
            demand_id=self.demand_id,
            demand_line_id=self.demand_line_id,
            item_id=self.item_id,
            allocated_bf=self.allocated_bf,
            consumed_bf=self.consumed_bf,
            status=AllocationStatus(self.status),
            allocation_date=self.allocation_date,
        )
