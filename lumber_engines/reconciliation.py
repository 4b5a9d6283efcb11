"""
TallyReconciliationChecker -- Pure engine for lot balance reconciliation.

Compares each tally sheet's recorded balances and status with what its
allocation history implies, and detects allocation records that break the
lot bookkeeping.

Architecture: lumber_engines -- pure calculation, zero I/O, zero DB access.
All inputs are frozen snapshots populated by the batch task.

Checks:
    balance_verification   remaining_bf vs received_bf - consumed allocations
    allocation_integrity   negative allocations, reservations above the
                           remaining balance, allocated_bf out of step with
                           open allocations
    status_validation      recorded status vs the status the balances imply
    orphan_detection       allocations without a demand
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from lumber_engines.bf_calculator import round_to
from lumber_engines.tracer import traced_engine
from lumber_kernel.domain.lots import (
    AllocationStatus,
    TallyAllocation,
    TallySheet,
    derive_lot_status,
)
from lumber_kernel.domain.values import ZERO
from lumber_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

BALANCE_TOLERANCE_BF = Decimal("0.01")
ERROR_VARIANCE_RATIO = Decimal("0.05")


# =============================================================================
# Types
# =============================================================================


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def auto_correctable(self) -> bool:
        return self in (Severity.INFO, Severity.WARNING)


class DiscrepancyType(str, Enum):
    BALANCE_MISMATCH = "balance_mismatch"
    NEGATIVE_ALLOCATIONS = "negative_allocations"
    OVER_ALLOCATION = "over_allocation"
    RESERVATION_MISMATCH = "reservation_mismatch"
    STATUS_MISMATCH = "status_mismatch"
    ORPHANED_ALLOCATIONS = "orphaned_allocations"


@dataclass(frozen=True)
class Correction:
    """Field update that would resolve a discrepancy."""

    field_name: str
    current_value: Any
    correct_value: Any


@dataclass(frozen=True)
class Discrepancy:
    type: DiscrepancyType
    severity: Severity
    message: str
    tally_id: UUID
    variance: Decimal | None = None
    correction: Correction | None = None

    @property
    def auto_correctable(self) -> bool:
        return self.correction is not None and self.severity.auto_correctable


@dataclass(frozen=True)
class LotReconciliation:
    """Findings for one lot."""

    tally_id: UUID
    tally_number: str
    discrepancies: tuple[Discrepancy, ...] = ()
    checks_performed: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_clean(self) -> bool:
        return not self.discrepancies

    @property
    def category(self) -> str:
        return "clean" if self.is_clean else "discrepancies"

    @property
    def corrections(self) -> tuple[Discrepancy, ...]:
        return tuple(d for d in self.discrepancies if d.auto_correctable)


# =============================================================================
# Checker
# =============================================================================


class TallyReconciliationChecker:
    """Pure engine for tally sheet reconciliation.

    Usage:
        checker = TallyReconciliationChecker()
        result = checker.run_all_checks(sheet, allocations)
    """

    def check_balance(
        self,
        sheet: TallySheet,
        allocations: Sequence[TallyAllocation],
    ) -> tuple[Discrepancy, ...]:
        """Recorded remaining vs received minus consumed allocations.

        Variance above 0.01 BF is flagged; ERROR when it exceeds 5% of the
        received quantity, otherwise WARNING (auto-correctable).
        """
        consumed = sum(
            (a.consumed_bf for a in allocations if a.status is AllocationStatus.CONSUMED),
            ZERO,
        )
        calculated = sheet.received_bf - consumed
        variance = abs(sheet.remaining_bf - calculated)
        if variance <= BALANCE_TOLERANCE_BF:
            return ()

        severity = (
            Severity.ERROR
            if variance > sheet.received_bf * ERROR_VARIANCE_RATIO
            else Severity.WARNING
        )
        return (
            Discrepancy(
                type=DiscrepancyType.BALANCE_MISMATCH,
                severity=severity,
                message=(
                    f"Balance mismatch: Recorded {round_to(sheet.remaining_bf, 2)} BF, "
                    f"Calculated {round_to(calculated, 2)} BF"
                ),
                tally_id=sheet.tally_id,
                variance=variance,
                correction=Correction("remaining_bf", sheet.remaining_bf, calculated),
            ),
        )

    def check_allocations(
        self,
        sheet: TallySheet,
        allocations: Sequence[TallyAllocation],
    ) -> tuple[Discrepancy, ...]:
        """Negative rows (ERROR), reservations above remaining (CRITICAL),
        and a stored allocated_bf that disagrees with open rows (WARNING)."""
        findings: list[Discrepancy] = []

        negative = [a for a in allocations if a.allocated_bf < ZERO or a.consumed_bf < ZERO]
        if negative:
            findings.append(Discrepancy(
                type=DiscrepancyType.NEGATIVE_ALLOCATIONS,
                severity=Severity.ERROR,
                message=f"{len(negative)} allocation(s) with negative BF found",
                tally_id=sheet.tally_id,
            ))

        open_bf = sum(
            (a.allocated_bf for a in allocations if a.status is AllocationStatus.ALLOCATED),
            ZERO,
        )
        if open_bf > sheet.remaining_bf:
            findings.append(Discrepancy(
                type=DiscrepancyType.OVER_ALLOCATION,
                severity=Severity.CRITICAL,
                message=(
                    f"Over-allocation: {round_to(open_bf, 2)} BF reserved vs "
                    f"{round_to(sheet.remaining_bf, 2)} BF remaining"
                ),
                tally_id=sheet.tally_id,
                variance=open_bf - sheet.remaining_bf,
            ))

        if abs(open_bf - sheet.allocated_bf) > BALANCE_TOLERANCE_BF:
            findings.append(Discrepancy(
                type=DiscrepancyType.RESERVATION_MISMATCH,
                severity=Severity.WARNING,
                message=(
                    f"Reserved BF mismatch: Recorded {round_to(sheet.allocated_bf, 2)} BF, "
                    f"open allocations {round_to(open_bf, 2)} BF"
                ),
                tally_id=sheet.tally_id,
                variance=abs(open_bf - sheet.allocated_bf),
                correction=Correction("allocated_bf", sheet.allocated_bf, open_bf),
            ))

        return tuple(findings)

    def check_status(self, sheet: TallySheet) -> tuple[Discrepancy, ...]:
        expected = derive_lot_status(
            sheet.status, sheet.received_bf, sheet.remaining_bf, sheet.allocated_bf,
        )
        if expected is sheet.status:
            return ()
        return (
            Discrepancy(
                type=DiscrepancyType.STATUS_MISMATCH,
                severity=Severity.WARNING,
                message=f"Status should be '{expected.value}' but is '{sheet.status.value}'",
                tally_id=sheet.tally_id,
                correction=Correction("status", sheet.status.value, expected.value),
            ),
        )

    def check_orphans(
        self,
        sheet: TallySheet,
        allocations: Sequence[TallyAllocation],
    ) -> tuple[Discrepancy, ...]:
        orphans = [a for a in allocations if not (a.demand_id or "").strip()]
        if not orphans:
            return ()
        return (
            Discrepancy(
                type=DiscrepancyType.ORPHANED_ALLOCATIONS,
                severity=Severity.WARNING,
                message=f"{len(orphans)} allocation(s) with missing demand",
                tally_id=sheet.tally_id,
            ),
        )

    @traced_engine("tally_reconciliation", "1.0", fingerprint_fields=("sheet",))
    def run_all_checks(
        self,
        sheet: TallySheet,
        allocations: Sequence[TallyAllocation],
    ) -> LotReconciliation:
        """Run every check category and return the lot's findings."""
        findings: list[Discrepancy] = []
        checks: list[str] = []

        findings.extend(self.check_balance(sheet, allocations))
        checks.append("balance_verification")

        findings.extend(self.check_allocations(sheet, allocations))
        checks.append("allocation_integrity")

        findings.extend(self.check_status(sheet))
        checks.append("status_validation")

        findings.extend(self.check_orphans(sheet, allocations))
        checks.append("orphan_detection")

        if findings:
            logger.info("tally_reconciliation_discrepancies", extra={
                "tally_id": str(sheet.tally_id),
                "tally_number": sheet.tally_number,
                "discrepancy_count": len(findings),
                "types": [d.type.value for d in findings],
            })

        return LotReconciliation(
            tally_id=sheet.tally_id,
            tally_number=sheet.tally_number,
            discrepancies=tuple(findings),
            checks_performed=tuple(checks),
            details={
                "received_bf": str(sheet.received_bf),
                "remaining_bf": str(sheet.remaining_bf),
                "allocated_bf": str(sheet.allocated_bf),
                "allocation_count": len(allocations),
            },
        )
