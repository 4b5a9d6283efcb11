"""
Module: lumber_engines.fifo
Responsibility:
    Plan FIFO draws of board feet across candidate lots: oldest lot first,
    each lot contributing at most its available balance, until the
    requirement is met or lots run out.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The tally service loads and locks the candidate lots, calls
    ``plan_fifo_draws`` and then persists the planned draws.

Invariants enforced:
    - Ordering: candidates are walked by (received_date, tally_number)
      regardless of input order.
    - No oversubscription: a draw never exceeds the lot's available BF.
    - No zero or negative draws are emitted.
    - Conservation: total_allocated + shortfall == required_bf.

Failure modes:
    - None raised.  A non-positive requirement yields an empty plan; a
      requirement larger than the total available yields a shortfall.

Usage:
    from lumber_engines.fifo import FifoCandidate, plan_fifo_draws

    plan = plan_fifo_draws(Decimal("40"), [lot_a, lot_b])
    plan.shortfall  # Decimal("0") when covered
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from lumber_engines.tracer import traced_engine
from lumber_kernel.domain.lots import TallySheet
from lumber_kernel.domain.values import ZERO
from lumber_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")


@dataclass(frozen=True)
class FifoCandidate:
    """A lot offered to the FIFO planner."""

    tally_id: UUID
    tally_number: str
    received_date: date
    available_bf: Decimal

    @classmethod
    def from_sheet(cls, sheet: TallySheet) -> FifoCandidate:
        return cls(
            tally_id=sheet.tally_id,
            tally_number=sheet.tally_number,
            received_date=sheet.received_date,
            available_bf=sheet.available_bf,
        )


@dataclass(frozen=True)
class PlannedDraw:
    candidate: FifoCandidate
    amount_bf: Decimal


@dataclass(frozen=True)
class FifoPlan:
    """
    Planned draws for one requirement.

    Guarantees:
        - ``total_allocated + shortfall == required_bf`` for a positive
          requirement.
        - Every draw amount is > 0 and <= its candidate's available BF.
    """

    required_bf: Decimal
    draws: tuple[PlannedDraw, ...]
    total_allocated: Decimal
    shortfall: Decimal

    @property
    def is_fully_allocated(self) -> bool:
        return self.shortfall <= ZERO


def fifo_order(candidates: Sequence[FifoCandidate]) -> list[FifoCandidate]:
    """Oldest first; ties broken by tally number."""
    return sorted(candidates, key=lambda c: (c.received_date, c.tally_number))


@traced_engine("fifo", "1.0", fingerprint_fields=("required_bf",))
def plan_fifo_draws(
    required_bf: Decimal,
    candidates: Sequence[FifoCandidate],
) -> FifoPlan:
    """
    Walk ``candidates`` oldest first, drawing min(available, still_needed).

    Args:
        required_bf: Board feet the demand needs.
        candidates: Lots with their current available balance.

    Returns:
        FifoPlan with the draws, total and shortfall.
    """
    if required_bf <= ZERO:
        return FifoPlan(required_bf, (), ZERO, ZERO)

    still_needed = required_bf
    draws: list[PlannedDraw] = []

    for candidate in fifo_order(candidates):
        if still_needed <= ZERO:
            break
        if candidate.available_bf <= ZERO:
            continue
        amount = min(candidate.available_bf, still_needed)
        draws.append(PlannedDraw(candidate=candidate, amount_bf=amount))
        still_needed -= amount

    total = required_bf - still_needed
    shortfall = max(ZERO, still_needed)

    logger.info("fifo_plan_completed", extra={
        "required_bf": str(required_bf),
        "total_allocated": str(total),
        "shortfall": str(shortfall),
        "lots_considered": len(candidates),
        "lots_drawn": len(draws),
    })

    return FifoPlan(
        required_bf=required_bf,
        draws=tuple(draws),
        total_allocated=total,
        shortfall=shortfall,
    )
