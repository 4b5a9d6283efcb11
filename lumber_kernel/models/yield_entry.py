"""
Module: lumber_kernel.models.yield_entry
Responsibility: ORM persistence for production yield entries, their
    adjustment audit trail, and yield alerts.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value objects only.

Invariants enforced:
    Y1 -- A yield entry is immutable once written, except through the
          adjustment path, which writes one YieldAdjustmentModel row per
          changed field (previous value, new value, reason, actor).
    Y2 -- waste_bf = max(0, actual_bf - theoretical_bf) at write time.

Failure modes:
    - IntegrityError on an adjustment whose entry_id does not exist.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from lumber_kernel.db.base import Base, TrackedBase, UUIDString
from lumber_kernel.domain.yields import (
    AlertType,
    AnomalySeverity,
    VarianceStatus,
    YieldAdjustment,
    YieldAlert,
    YieldEntry,
)


class YieldEntryModel(TrackedBase):
    """One row per work-order completion."""

    __tablename__ = "yield_entries"

    __table_args__ = (
        Index("idx_yield_item_date", "item_id", "completion_date"),
        Index("idx_yield_work_order", "work_order_id"),
    )

    item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    work_order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    theoretical_bf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    actual_bf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    # INVARIANT Y2
    waste_bf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    recovery_pct: Mapped[Decimal] = mapped_column(Numeric(9, 2), nullable=False)
    expected_yield_pct: Mapped[Decimal] = mapped_column(Numeric(9, 2), nullable=False)
    variance_pct: Mapped[Decimal] = mapped_column(Numeric(9, 2), nullable=False)
    variance_status: Mapped[str] = mapped_column(String(30), nullable=False)

    waste_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    operator_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    completion_date: Mapped[date] = mapped_column(nullable=False)

    def to_dto(self) -> YieldEntry:
        return YieldEntry(
            entry_id=self.id,
            item_id=self.item_id,
            work_order_id=self.work_order_id,
            location_id=self.location_id,
            theoretical_bf=self.theoretical_bf,
            actual_bf=self.actual_bf,
            waste_bf=self.waste_bf,
            recovery_pct=self.recovery_pct,
            expected_yield_pct=self.expected_yield_pct,
            variance_pct=self.variance_pct,
            variance_status=VarianceStatus(self.variance_status),
            completion_date=self.completion_date,
            waste_reason=self.waste_reason,
            operator_id=self.operator_id,
        )


class YieldAdjustmentModel(Base):
    """Append-only audit trail for yield entry changes (Y1)."""

    __tablename__ = "yield_adjustments"

    __table_args__ = (
        Index("idx_yield_adj_entry", "entry_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("yield_entries.id"), nullable=False,
    )
    field_name: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_value: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    new_value: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    change: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    adjusted_by: Mapped[str] = mapped_column(String(100), nullable=False)
    adjusted_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> YieldAdjustment:
        return YieldAdjustment(
            adjustment_id=self.id,
            entry_id=self.entry_id,
            field_name=self.field_name,
            previous_value=self.previous_value,
            new_value=self.new_value,
            change=self.change,
            reason=self.reason,
            adjusted_by=self.adjusted_by,
            adjusted_at=self.adjusted_at,
        )


class YieldAlertModel(TrackedBase):
    """Yield observations raised for review."""

    __tablename__ = "yield_alerts"

    alert_type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    item_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    work_order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> YieldAlert:
        return YieldAlert(
            alert_id=self.id,
            alert_type=AlertType(self.alert_type),
            severity=AnomalySeverity(self.severity),
            message=self.message,
            item_id=self.item_id,
            work_order_id=self.work_order_id,
            entry_id=self.entry_id,
        )
