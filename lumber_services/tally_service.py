"""
lumber_services.tally_service -- Tally sheet (lot) balances and FIFO allocation.

Responsibility:
    Create tally sheets on receipt, reserve their board feet against
    demands (oldest lot first), consume and release those reservations,
    record direct consumption, reverse consumption, and move lots through
    the lot workflow (activate, void, close).

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes ``lumber_engines.fifo.plan_fifo_draws`` (pure draw planning),
    the lot / allocation workflows in ``lumber_modules.tally.workflows``
    and the ``tally_sheets`` / ``tally_allocations`` tables.

Invariants enforced:
    - 0 <= allocated_bf <= remaining_bf <= received_bf on every lot this
      service writes.  remaining_bf moves only on consumption and reversal;
      allocated_bf is the sum of open allocations.
    - FIFO: draws follow (received_date, tally_number); a draw never
      exceeds the lot's available balance; zero draws are never stored.
    - Every status change is a transition the lot workflow defines.
      Void and closed lots accept no balance change.
    - Every mutation runs inside a SAVEPOINT and reads its lots with
      SELECT ... FOR UPDATE; the lot ``version`` column catches the writes
      that slip past the row lock.

Failure modes:
    - ValidationError subclasses are raised for bad input (missing item or
      location, non-positive quantities).
    - Mutations return ``OperationResult.fail`` for TallyError,
      ConcurrencyError (OptimisticLockError on a stale lot version) and
      persistence errors; the SAVEPOINT is rolled back and the outer
      transaction stays usable.

Usage:
    service = TallyService(session, SettingsProvider())
    result = service.allocate_fifo(
        item_id="2X4-SPF",
        required_bf=Decimal("40"),
        location_id="YARD-1",
        demand_id="WO-1001",
    )
    if result.success:
        result.value.shortfall  # Decimal("0") when fully covered
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from lumber_config.provider import SettingsProvider
from lumber_engines.bf_calculator import round_to
from lumber_engines.fifo import FifoCandidate, plan_fifo_draws
from lumber_engines.reconciliation import Correction
from lumber_engines.validation import validate_dimension_values, validate_percentage
from lumber_kernel.domain.clock import Clock, SystemClock
from lumber_kernel.domain.lots import (
    AllocationStatus,
    FifoAllocationResult,
    LotDraw,
    LotStatus,
    TallyAllocation,
    TallySheet,
    derive_lot_status,
)
from lumber_kernel.domain.results import OperationResult
from lumber_kernel.domain.values import ZERO, DimensionSet, parse_decimal
from lumber_kernel.exceptions import (
    ConcurrencyError,
    InsufficientTallyBalanceError,
    InvalidLotTransitionError,
    InvalidQuantityError,
    MissingRequiredFieldError,
    OptimisticLockError,
    TallyError,
    TallySheetFrozenError,
    TallySheetNotFoundError,
)
from lumber_kernel.logging_config import LogContext, get_logger
from lumber_kernel.models.tally import TallyAllocationModel, TallySheetModel
from lumber_modules.tally.workflows import ALLOCATION_WORKFLOW, LOT_WORKFLOW

logger = get_logger("services.tally")

T = TypeVar("T")

PERSISTENCE_ERROR = "PERSISTENCE_ERROR"

_AVAILABLE_STATUSES = tuple(s.value for s in LotStatus if s.is_available)
_CORRECTABLE_BALANCES = ("remaining_bf", "allocated_bf")


def _num(value: Decimal) -> str:
    return format(value.normalize(), "f")


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _require_positive(value: Any, field_name: str) -> Decimal:
    amount = parse_decimal(value)
    if amount is None:
        raise InvalidQuantityError(field_name, str(value), "not a number")
    if amount <= ZERO:
        raise InvalidQuantityError(field_name, str(value), "must be greater than 0")
    return amount


# =============================================================================
# Work order allocation types
# =============================================================================


@dataclass(frozen=True)
class WorkOrderLine:
    """One material requirement on a work order."""

    line_id: str
    item_id: str
    required_bf: Decimal
    location_id: str
    subsidiary_id: str | None = None
    grade: str | None = None


@dataclass(frozen=True)
class LineAllocation:
    line_id: str
    result: FifoAllocationResult
    message: str | None = None


@dataclass(frozen=True)
class WorkOrderAllocation:
    """FIFO results for every line of one work order."""

    demand_id: str
    lines: tuple[LineAllocation, ...]

    @property
    def is_fully_allocated(self) -> bool:
        return all(line.result.is_fully_allocated for line in self.lines)

    @property
    def total_shortfall(self) -> Decimal:
        return sum((line.result.shortfall for line in self.lines), ZERO)

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(line.message for line in self.lines if line.message)


class TallyService:
    """
    Lot balances, FIFO allocation and the lot lifecycle.

    Contract:
        Receives a Session, a SettingsProvider and optionally a Clock via
        constructor injection.  The caller owns the outer transaction;
        this service only opens SAVEPOINTs inside it.
    Guarantees:
        - A failed mutation leaves no partial writes behind.
        - Lots touched by one operation are locked in id order.
    Non-goals:
        - Does not compute board feet from selling units
          (see lumber_engines.conversion).
    """

    def __init__(
        self,
        session: Session,
        settings: SettingsProvider,
        clock: Clock | None = None,
    ):
        self.session = session
        self.settings = settings
        self.clock = clock or SystemClock()

    # =========================================================================
    # Transaction and locking helpers
    # =========================================================================

    def _guarded(
        self,
        operation: str,
        work: Callable[[], T],
        lot_id: Any = None,
        work_order_id: str | None = None,
    ) -> OperationResult[T]:
        """
        Run ``work`` inside a SAVEPOINT and convert tally / concurrency failures.

        ``lot_id`` and ``work_order_id`` are bound to the LogContext for the
        duration, so every record the operation logs carries them.
        """
        with LogContext.bind(lot_id=lot_id, work_order_id=work_order_id):
            return self._run_savepoint(operation, work, lot_id or work_order_id)

    def _run_savepoint(
        self,
        operation: str,
        work: Callable[[], T],
        entity_id: Any,
    ) -> OperationResult[T]:
        savepoint = self.session.begin_nested()
        try:
            value = work()
            self.session.flush()
        except StaleDataError as e:
            savepoint.rollback()
            conflict = OptimisticLockError("TallySheet", str(entity_id or "unknown"))
            logger.warning("tally_optimistic_lock_conflict", extra={
                "operation": operation,
                "entity_id": str(entity_id) if entity_id else None,
                "detail": str(e),
            })
            return OperationResult.fail(str(conflict), conflict.code)
        except (TallyError, ConcurrencyError) as e:
            savepoint.rollback()
            logger.warning("tally_operation_rejected", extra={
                "operation": operation,
                "entity_id": str(entity_id) if entity_id else None,
                "error_code": e.code,
                "error": str(e),
            })
            return OperationResult.fail(str(e), e.code)
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.error("tally_persistence_error", extra={
                "operation": operation,
                "entity_id": str(entity_id) if entity_id else None,
            }, exc_info=True)
            return OperationResult.fail(str(e), PERSISTENCE_ERROR)
        except Exception:
            savepoint.rollback()
            raise
        savepoint.commit()
        return OperationResult.ok(value)

    def _lock_lot(self, tally_id: UUID | str) -> TallySheetModel:
        stmt = (
            select(TallySheetModel)
            .where(TallySheetModel.id == _as_uuid(tally_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        model = self.session.execute(stmt).scalars().first()
        if model is None:
            raise TallySheetNotFoundError(str(tally_id))
        return model

    def _lock_lots(self, tally_ids: Sequence[UUID]) -> dict[UUID, TallySheetModel]:
        if not tally_ids:
            return {}
        stmt = (
            select(TallySheetModel)
            .where(TallySheetModel.id.in_(sorted(set(tally_ids))))
            .order_by(TallySheetModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {m.id: m for m in self.session.execute(stmt).scalars()}

    def _available_lots_stmt(
        self,
        item_id: str,
        location_id: str,
        subsidiary_id: str | None,
        grade: str | None,
    ):
        stmt = select(TallySheetModel).where(
            TallySheetModel.item_id == item_id,
            TallySheetModel.location_id == location_id,
            TallySheetModel.status.in_(_AVAILABLE_STATUSES),
            TallySheetModel.remaining_bf > ZERO,
        )
        if subsidiary_id:
            stmt = stmt.where(TallySheetModel.subsidiary_id == subsidiary_id)
        if grade:
            stmt = stmt.where(TallySheetModel.grade == grade)
        return stmt.order_by(TallySheetModel.received_date, TallySheetModel.tally_number)

    # =========================================================================
    # Status handling
    # =========================================================================

    @staticmethod
    def _ensure_not_frozen(model: TallySheetModel) -> None:
        if model.lot_status.is_frozen:
            raise TallySheetFrozenError(str(model.id), model.status)

    @staticmethod
    def _transition(model: TallySheetModel, target: LotStatus) -> None:
        if not LOT_WORKFLOW.allows(model.status, target.value):
            raise InvalidLotTransitionError(str(model.id), model.status, target.value)
        if model.status != target.value:
            logger.info("tally_status_changed", extra={
                "tally_id": str(model.id),
                "tally_number": model.tally_number,
                "from_status": model.status,
                "to_status": target.value,
            })
            model.status = target.value

    def _apply_status(self, model: TallySheetModel) -> None:
        derived = derive_lot_status(
            model.lot_status, model.received_bf, model.remaining_bf, model.allocated_bf,
        )
        self._transition(model, derived)

    @staticmethod
    def _move_allocation(allocation: TallyAllocationModel, target: AllocationStatus) -> None:
        if not ALLOCATION_WORKFLOW.allows(allocation.status, target.value):
            raise TallyError(
                f"Allocation {allocation.id} cannot move from "
                f"{allocation.status} to {target.value}"
            )
        allocation.status = target.value

    def _new_allocation(
        self,
        model: TallySheetModel,
        demand_id: str | None,
        amount_bf: Decimal,
        demand_line_id: str | None = None,
        status: AllocationStatus = AllocationStatus.ALLOCATED,
    ) -> TallyAllocationModel:
        allocation = TallyAllocationModel(
            id=uuid4(),
            tally_id=model.id,
            item_id=model.item_id,
            demand_id=demand_id,
            demand_line_id=demand_line_id,
            allocated_bf=amount_bf,
            consumed_bf=amount_bf if status is AllocationStatus.CONSUMED else ZERO,
            status=status.value,
            allocation_date=self.clock.today(),
        )
        self.session.add(allocation)
        return allocation

    def _release_open_allocations(self, model: TallySheetModel) -> int:
        stmt = select(TallyAllocationModel).where(
            TallyAllocationModel.tally_id == model.id,
            TallyAllocationModel.status == AllocationStatus.ALLOCATED.value,
        )
        released = 0
        for allocation in self.session.execute(stmt).scalars():
            self._move_allocation(allocation, AllocationStatus.RELEASED)
            released += 1
        model.allocated_bf = ZERO
        return released

    # =========================================================================
    # Tally sheet lifecycle
    # =========================================================================

    def _next_tally_number(self, received: date) -> str:
        """TS-YYYYMMDD-NNNN, one past the highest numeric suffix for the date."""
        prefix = f"TS-{received:%Y%m%d}-"
        stmt = select(TallySheetModel.tally_number).where(
            TallySheetModel.tally_number.like(f"{prefix}%")
        )
        highest = 0
        for number in self.session.execute(stmt).scalars():
            suffix = number[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:04d}"

    def create_tally_sheet(
        self,
        item_id: str,
        location_id: str,
        received_bf: Decimal,
        subsidiary_id: str | None = None,
        tally_number: str | None = None,
        received_date: date | None = None,
        dimensions: DimensionSet | None = None,
        piece_count: int | None = None,
        grade: str | None = None,
        moisture_pct: Decimal | None = None,
        vendor_lot: str | None = None,
        bundle_id: str | None = None,
        draft: bool = False,
    ) -> OperationResult[TallySheet]:
        """
        Record a received lot.

        Postconditions:
            remaining_bf == received_bf, allocated_bf == 0, status OPEN
            (DRAFT when ``draft``).

        Raises:
            MissingRequiredFieldError: item or location missing.
            InvalidQuantityError: received BF not positive, dimensions or
                moisture out of range.

        A duplicate tally number comes back as a failed result with
        PERSISTENCE_ERROR.
        """
        if not item_id:
            raise MissingRequiredFieldError("item_id", "tally sheet")
        if not location_id:
            raise MissingRequiredFieldError("location_id", "tally sheet")
        received = _require_positive(received_bf, "received_bf")

        dims = dimensions or DimensionSet.empty()
        warnings: list[str] = []
        if dims.has_thickness or dims.has_width or dims.has_length:
            dim_check = validate_dimension_values(
                dims.thickness if dims.has_thickness else None,
                dims.width if dims.has_width else None,
                dims.length if dims.has_length else None,
            )
            if not dim_check.is_valid:
                raise InvalidQuantityError(
                    "dimensions", str(dims.as_dict()), "; ".join(dim_check.errors),
                )
            warnings.extend(dim_check.warnings)
        if moisture_pct is not None:
            moisture_check = validate_percentage(moisture_pct, "Moisture")
            if not moisture_check.is_valid:
                raise InvalidQuantityError(
                    "moisture_pct", str(moisture_pct), "; ".join(moisture_check.errors),
                )

        received_on = received_date or self.clock.today()

        def work() -> TallySheet:
            model = TallySheetModel(
                id=uuid4(),
                tally_number=tally_number or self._next_tally_number(received_on),
                item_id=item_id,
                location_id=location_id,
                subsidiary_id=subsidiary_id,
                vendor_lot=vendor_lot,
                bundle_id=bundle_id,
                received_bf=received,
                remaining_bf=received,
                allocated_bf=ZERO,
                status=(LotStatus.DRAFT if draft else LotStatus.OPEN).value,
                received_date=received_on,
                thickness=dims.thickness if dims.has_thickness else None,
                width=dims.width if dims.has_width else None,
                length=dims.length if dims.has_length else None,
                pieces_per_bundle=dims.pieces_per_bundle,
                piece_count=piece_count,
                grade=grade,
                moisture_pct=moisture_pct,
            )
            self.session.add(model)
            self.session.flush()
            logger.info("tally_sheet_created", extra={
                "tally_id": str(model.id),
                "tally_number": model.tally_number,
                "item_id": item_id,
                "location_id": location_id,
                "received_bf": str(received),
                "status": model.status,
                "warnings": warnings,
            })
            return model.to_dto()

        return self._guarded("create_tally_sheet", work)

    def get_tally_sheet(self, tally_id: UUID | str) -> TallySheet:
        model = self.session.get(TallySheetModel, _as_uuid(tally_id))
        if model is None:
            raise TallySheetNotFoundError(str(tally_id))
        return model.to_dto()

    def activate(self, tally_id: UUID | str) -> OperationResult[TallySheet]:
        """Draft -> open."""

        def work() -> TallySheet:
            model = self._lock_lot(tally_id)
            self._transition(model, LotStatus.OPEN)
            return model.to_dto()

        return self._guarded("activate", work, tally_id)

    def void(self, tally_id: UUID | str, reason: str | None = None) -> OperationResult[TallySheet]:
        """Freeze a lot entered in error; open reservations are released."""
        return self._freeze(tally_id, LotStatus.VOID, reason)

    def close(self, tally_id: UUID | str, reason: str | None = None) -> OperationResult[TallySheet]:
        """Freeze a lot administratively; open reservations are released."""
        return self._freeze(tally_id, LotStatus.CLOSED, reason)

    def _freeze(
        self,
        tally_id: UUID | str,
        target: LotStatus,
        reason: str | None,
    ) -> OperationResult[TallySheet]:
        def work() -> TallySheet:
            model = self._lock_lot(tally_id)
            if model.lot_status.is_frozen or not LOT_WORKFLOW.allows(model.status, target.value):
                raise InvalidLotTransitionError(str(model.id), model.status, target.value)
            released = self._release_open_allocations(model)
            self._transition(model, target)
            logger.info("tally_sheet_frozen", extra={
                "tally_id": str(model.id),
                "status": target.value,
                "reason": reason,
                "allocations_released": released,
            })
            return model.to_dto()

        return self._guarded(target.value, work, tally_id)

    def update_lot_status(self, tally_id: UUID | str) -> OperationResult[TallySheet]:
        """Re-derive the status from the current balances."""

        def work() -> TallySheet:
            model = self._lock_lot(tally_id)
            self._apply_status(model)
            return model.to_dto()

        return self._guarded("update_lot_status", work, tally_id)

    def apply_corrections(
        self,
        tally_id: UUID | str,
        corrections: Sequence[Correction],
    ) -> OperationResult[int]:
        """
        Apply reconciliation corrections to one lot.

        Balance corrections (``remaining_bf``, ``allocated_bf``) are written
        as given; the status is then re-derived through the lot workflow, so
        a ``status`` correction never sets the column directly.  The value
        is the number of fields changed.

        Fails with TALLY_ERROR when the corrected balances would break
        0 <= allocated_bf <= remaining_bf <= received_bf.
        """

        def work() -> int:
            model = self._lock_lot(tally_id)
            self._ensure_not_frozen(model)
            changed = 0
            for correction in corrections:
                if correction.field_name not in _CORRECTABLE_BALANCES:
                    continue
                value = Decimal(str(correction.correct_value))
                if getattr(model, correction.field_name) != value:
                    setattr(model, correction.field_name, value)
                    changed += 1

            if not ZERO <= model.allocated_bf <= model.remaining_bf <= model.received_bf:
                raise TallyError(
                    f"Corrections would leave tally {model.id} out of balance: "
                    f"received {_num(model.received_bf)}, remaining "
                    f"{_num(model.remaining_bf)}, allocated {_num(model.allocated_bf)}"
                )

            previous = model.status
            self._apply_status(model)
            if model.status != previous:
                changed += 1

            logger.info("tally_corrections_applied", extra={
                "tally_id": str(model.id),
                "tally_number": model.tally_number,
                "fields": sorted({c.field_name for c in corrections}),
                "changed": changed,
            })
            return changed

        return self._guarded("apply_corrections", work, tally_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def find_available_lots(
        self,
        item_id: str,
        location_id: str,
        subsidiary_id: str | None = None,
        grade: str | None = None,
        required_bf: Decimal | None = None,
    ) -> list[TallySheet]:
        """
        Lots with remaining balance, oldest first.

        When FIFO is enforced and ``required_bf`` is given, the walk stops as
        soon as the accumulated available BF covers the requirement.
        """
        stmt = self._available_lots_stmt(item_id, location_id, subsidiary_id, grade)
        stop_at = required_bf if required_bf and self.settings.is_fifo_enforced() else None

        lots: list[TallySheet] = []
        accumulated = ZERO
        for model in self.session.execute(stmt).scalars():
            lots.append(model.to_dto())
            accumulated += model.available_bf
            if stop_at is not None and accumulated >= stop_at:
                break

        logger.debug("available_lots_found", extra={
            "item_id": item_id,
            "location_id": location_id,
            "lot_count": len(lots),
            "available_bf": str(accumulated),
        })
        return lots

    def get_available_bf(
        self,
        item_id: str,
        location_id: str,
        subsidiary_id: str | None = None,
    ) -> Decimal:
        lots = self.find_available_lots(item_id, location_id, subsidiary_id)
        return sum((lot.available_bf for lot in lots), ZERO)

    def allocations_for_demand(
        self,
        demand_id: str,
        status: AllocationStatus | None = None,
    ) -> list[TallyAllocation]:
        stmt = select(TallyAllocationModel).where(TallyAllocationModel.demand_id == demand_id)
        if status is not None:
            stmt = stmt.where(TallyAllocationModel.status == status.value)
        stmt = stmt.order_by(TallyAllocationModel.allocation_date, TallyAllocationModel.created_at)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    # =========================================================================
    # Allocation
    # =========================================================================

    def _allocate_locked(
        self,
        item_id: str,
        required_bf: Decimal,
        location_id: str,
        subsidiary_id: str | None,
        grade: str | None,
        demand_id: str | None,
        demand_line_id: str | None,
    ) -> FifoAllocationResult:
        stmt = (
            self._available_lots_stmt(item_id, location_id, subsidiary_id, grade)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        models = {m.id: m for m in self.session.execute(stmt).scalars()}
        plan = plan_fifo_draws(
            required_bf,
            [FifoCandidate.from_sheet(m.to_dto()) for m in models.values()],
        )

        draws: list[LotDraw] = []
        for planned in plan.draws:
            candidate = planned.candidate
            allocation_id = None
            if demand_id is not None:
                model = models[candidate.tally_id]
                allocation = self._new_allocation(
                    model, demand_id, planned.amount_bf, demand_line_id,
                )
                allocation_id = allocation.id
                model.allocated_bf = model.allocated_bf + planned.amount_bf
                self._apply_status(model)
            draws.append(LotDraw(
                tally_id=candidate.tally_id,
                tally_number=candidate.tally_number,
                amount_bf=planned.amount_bf,
                lot_available_before=candidate.available_bf,
                received_date=candidate.received_date,
                allocation_id=allocation_id,
            ))

        return FifoAllocationResult(
            item_id=item_id,
            required_bf=required_bf,
            draws=tuple(draws),
            total_allocated=plan.total_allocated,
            shortfall=plan.shortfall,
            demand_id=demand_id,
        )

    def allocate_fifo(
        self,
        item_id: str,
        required_bf: Decimal,
        location_id: str,
        subsidiary_id: str | None = None,
        demand_id: str | None = None,
        demand_line_id: str | None = None,
        grade: str | None = None,
    ) -> OperationResult[FifoAllocationResult]:
        """
        Reserve ``required_bf`` across lots, oldest first.

        Without a ``demand_id`` the draws are planned but nothing is
        written.  A shortfall is reported in the result, not raised.

        Raises:
            InvalidQuantityError: ``required_bf`` missing, not a number or
                not positive.
        """
        required = _require_positive(required_bf, "required_bf")
        t0 = time.monotonic()
        logger.info("fifo_allocation_started", extra={
            "item_id": item_id,
            "location_id": location_id,
            "required_bf": str(required),
            "demand_id": demand_id,
        })

        result = self._guarded(
            "allocate_fifo",
            lambda: self._allocate_locked(
                item_id, required, location_id, subsidiary_id,
                grade, demand_id, demand_line_id,
            ),
            work_order_id=demand_id,
        )

        if result.success:
            allocation = result.value
            logger.info("fifo_allocation_completed", extra={
                "item_id": item_id,
                "demand_id": demand_id,
                "total_allocated": str(allocation.total_allocated),
                "shortfall": str(allocation.shortfall),
                "lots_used": allocation.lots_used,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
        return result

    def allocate_for_work_order(
        self,
        demand_id: str,
        lines: Sequence[WorkOrderLine],
    ) -> OperationResult[WorkOrderAllocation]:
        """FIFO-allocate every line of a work order in one SAVEPOINT."""
        if not demand_id:
            raise MissingRequiredFieldError("demand_id", "work order allocation")
        required = [_require_positive(line.required_bf, "required_bf") for line in lines]
        t0 = time.monotonic()

        def work() -> WorkOrderAllocation:
            allocated: list[LineAllocation] = []
            for line, line_bf in zip(lines, required):
                result = self._allocate_locked(
                    line.item_id, line_bf, line.location_id,
                    line.subsidiary_id, line.grade, demand_id, line.line_id,
                )
                message = None
                if not result.is_fully_allocated:
                    shortfall = round_to(result.shortfall, self.settings.get().bf_precision)
                    message = f"Short by {_num(shortfall)} BF"
                allocated.append(LineAllocation(line.line_id, result, message))
            return WorkOrderAllocation(demand_id=demand_id, lines=tuple(allocated))

        result = self._guarded("allocate_for_work_order", work, work_order_id=demand_id)
        if result.success:
            logger.info("work_order_allocation_completed", extra={
                "demand_id": demand_id,
                "line_count": len(lines),
                "fully_allocated": result.value.is_fully_allocated,
                "total_shortfall": str(result.value.total_shortfall),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
        return result

    def create_allocation(
        self,
        tally_id: UUID | str,
        demand_id: str,
        allocated_bf: Decimal,
        demand_line_id: str | None = None,
    ) -> OperationResult[TallyAllocation]:
        """Reserve board feet on one specific lot."""
        if not demand_id:
            raise MissingRequiredFieldError("demand_id", "tally allocation")
        amount = _require_positive(allocated_bf, "allocated_bf")

        def work() -> TallyAllocation:
            model = self._lock_lot(tally_id)
            self._ensure_not_frozen(model)
            if not model.lot_status.is_available:
                raise InvalidLotTransitionError(
                    str(model.id), model.status, LotStatus.ALLOCATED.value,
                )
            if amount > model.available_bf:
                raise InsufficientTallyBalanceError(
                    str(model.id), _num(amount), _num(model.available_bf),
                )
            allocation = self._new_allocation(model, demand_id, amount, demand_line_id)
            model.allocated_bf = model.allocated_bf + amount
            self._apply_status(model)
            self.session.flush()
            return allocation.to_dto()

        return self._guarded("create_allocation", work, tally_id)

    # =========================================================================
    # Consumption, release and reversal
    # =========================================================================

    def _open_allocations(self, demand_id: str) -> list[TallyAllocationModel]:
        stmt = (
            select(TallyAllocationModel)
            .where(
                TallyAllocationModel.demand_id == demand_id,
                TallyAllocationModel.status == AllocationStatus.ALLOCATED.value,
            )
            .order_by(TallyAllocationModel.allocation_date, TallyAllocationModel.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def mark_consumed(self, demand_id: str) -> OperationResult[tuple[TallyAllocation, ...]]:
        """
        Consume every open allocation of ``demand_id``.

        Each lot loses the allocated amount from both its remaining and its
        reserved balance.
        """
        t0 = time.monotonic()

        def work() -> tuple[TallyAllocation, ...]:
            allocations = self._open_allocations(demand_id)
            lots = self._lock_lots([a.tally_id for a in allocations])
            consumed: list[TallyAllocation] = []
            for allocation in allocations:
                model = lots[allocation.tally_id]
                self._ensure_not_frozen(model)
                amount = allocation.allocated_bf
                model.remaining_bf = max(ZERO, model.remaining_bf - amount)
                model.allocated_bf = max(ZERO, model.allocated_bf - amount)
                allocation.consumed_bf = amount
                self._move_allocation(allocation, AllocationStatus.CONSUMED)
                self._apply_status(model)
                consumed.append(allocation.to_dto())
            return tuple(consumed)

        result = self._guarded("mark_consumed", work, work_order_id=demand_id)
        if result.success:
            logger.info("allocations_consumed", extra={
                "demand_id": demand_id,
                "allocation_count": len(result.value),
                "consumed_bf": str(sum((a.consumed_bf for a in result.value), ZERO)),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
        return result

    def release_allocations(self, demand_id: str) -> OperationResult[tuple[TallyAllocation, ...]]:
        """Cancel every open allocation of ``demand_id``; remaining BF is untouched."""

        def work() -> tuple[TallyAllocation, ...]:
            allocations = self._open_allocations(demand_id)
            lots = self._lock_lots([a.tally_id for a in allocations])
            released: list[TallyAllocation] = []
            for allocation in allocations:
                model = lots[allocation.tally_id]
                model.allocated_bf = max(ZERO, model.allocated_bf - allocation.allocated_bf)
                self._move_allocation(allocation, AllocationStatus.RELEASED)
                if not model.lot_status.is_frozen:
                    self._apply_status(model)
                released.append(allocation.to_dto())
            return tuple(released)

        result = self._guarded("release_allocations", work, work_order_id=demand_id)
        if result.success:
            logger.info("allocations_released", extra={
                "demand_id": demand_id,
                "allocation_count": len(result.value),
            })
        return result

    def record_consumption(
        self,
        tally_id: UUID | str,
        consumed_bf: Decimal,
        demand_id: str,
        demand_line_id: str | None = None,
    ) -> OperationResult[TallyAllocation]:
        """Consume unreserved board feet directly, without a prior reservation."""
        if not demand_id:
            raise MissingRequiredFieldError("demand_id", "consumption")
        amount = _require_positive(consumed_bf, "consumed_bf")

        def work() -> TallyAllocation:
            model = self._lock_lot(tally_id)
            self._ensure_not_frozen(model)
            if not model.lot_status.is_available:
                raise InvalidLotTransitionError(
                    str(model.id), model.status, LotStatus.CONSUMED.value,
                )
            if amount > model.available_bf:
                raise InsufficientTallyBalanceError(
                    str(model.id), _num(amount), _num(model.available_bf),
                )
            allocation = self._new_allocation(
                model, demand_id, amount, demand_line_id, AllocationStatus.CONSUMED,
            )
            model.remaining_bf = model.remaining_bf - amount
            self._apply_status(model)
            self.session.flush()
            logger.info("tally_consumption_recorded", extra={
                "tally_id": str(model.id),
                "demand_id": demand_id,
                "consumed_bf": str(amount),
                "remaining_bf": str(model.remaining_bf),
            })
            return allocation.to_dto()

        return self._guarded("record_consumption", work, tally_id)

    def reverse_consumption(
        self,
        tally_id: UUID | str,
        amount_bf: Decimal,
        reason: str | None = None,
    ) -> OperationResult[TallySheet]:
        """
        Credit consumed board feet back to a lot.

        remaining_bf becomes min(remaining + amount, received).  The credit
        is taken off the lot's consumed allocations, newest first; an
        allocation whose consumption is fully reversed is released.
        """
        amount = _require_positive(amount_bf, "amount_bf")

        def work() -> TallySheet:
            model = self._lock_lot(tally_id)
            self._ensure_not_frozen(model)
            credit = min(amount, model.received_bf - model.remaining_bf)
            if credit <= ZERO:
                logger.warning("tally_reversal_nothing_consumed", extra={
                    "tally_id": str(model.id),
                    "requested_bf": str(amount),
                })
                return model.to_dto()

            model.remaining_bf = model.remaining_bf + credit

            stmt = (
                select(TallyAllocationModel)
                .where(
                    TallyAllocationModel.tally_id == model.id,
                    TallyAllocationModel.status == AllocationStatus.CONSUMED.value,
                )
                .order_by(
                    TallyAllocationModel.allocation_date.desc(),
                    TallyAllocationModel.created_at.desc(),
                )
            )
            left = credit
            for allocation in self.session.execute(stmt).scalars():
                if left <= ZERO:
                    break
                taken = min(allocation.consumed_bf, left)
                allocation.consumed_bf = allocation.consumed_bf - taken
                left -= taken
                if allocation.consumed_bf <= ZERO:
                    self._move_allocation(allocation, AllocationStatus.RELEASED)

            self._apply_status(model)
            logger.info("tally_consumption_reversed", extra={
                "tally_id": str(model.id),
                "requested_bf": str(amount),
                "credited_bf": str(credit),
                "remaining_bf": str(model.remaining_bf),
                "reason": reason,
            })
            return model.to_dto()

        return self._guarded("reverse_consumption", work, tally_id)
