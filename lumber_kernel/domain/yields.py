"""
Yields -- Yield entry, adjustment and summary value objects.

Responsibility:
    Immutable snapshots for production yield tracking: one YieldEntry per
    work-order completion, YieldAdjustment audit rows, YieldAlert
    observations, and the YieldSummary reduction shared by the service
    queries and the batch jobs.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class VarianceStatus(str, Enum):
    """Actual recovery compared with the expected yield percentage."""

    ABOVE_EXPECTED = "ABOVE_EXPECTED"
    WITHIN_TOLERANCE = "WITHIN_TOLERANCE"
    BELOW_EXPECTED = "BELOW_EXPECTED"


class AnomalySeverity(str, Enum):
    """Severity of a recovery percentage outside the normal band."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class AlertType(str, Enum):
    LOW_YIELD = "low_yield"
    HIGH_WASTE = "high_waste"
    RECOVERY_ANOMALY = "recovery_anomaly"


@dataclass(frozen=True)
class YieldEntry:
    """Snapshot of one production yield record."""

    entry_id: UUID
    item_id: str
    theoretical_bf: Decimal
    actual_bf: Decimal
    waste_bf: Decimal
    recovery_pct: Decimal
    expected_yield_pct: Decimal
    variance_pct: Decimal
    variance_status: VarianceStatus
    completion_date: date
    work_order_id: str | None = None
    location_id: str | None = None
    waste_reason: str | None = None
    operator_id: str | None = None


@dataclass(frozen=True)
class YieldAdjustment:
    """Audit trail row for a change to a yield entry."""

    adjustment_id: UUID
    entry_id: UUID
    field_name: str
    previous_value: Decimal
    new_value: Decimal
    change: Decimal
    reason: str
    adjusted_by: str
    adjusted_at: datetime


@dataclass(frozen=True)
class YieldAlert:
    """Flagged observation surfaced to humans; never blocks a save."""

    alert_id: UUID
    alert_type: AlertType
    severity: AnomalySeverity
    message: str
    item_id: str | None = None
    work_order_id: str | None = None
    entry_id: UUID | None = None


@dataclass(frozen=True)
class YieldSummary:
    """Reduction over a filtered collection of yield entries."""

    sum_theoretical: Decimal
    sum_actual: Decimal
    sum_waste: Decimal
    avg_recovery_pct: Decimal
    count: int
    key: str | None = None
