"""
Tally Workflows.

State machines for tally sheets (lots) and tally allocations.
"""

from dataclasses import dataclass

from lumber_kernel.logging_config import get_logger

logger = get_logger("modules.tally.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    changes_balance: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def find(self, from_state: str, to_state: str) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.to_state == to_state:
                return transition
        return None

    def allows(self, from_state: str, to_state: str) -> bool:
        """Staying in the same state is always allowed."""
        return from_state == to_state or self.find(from_state, to_state) is not None

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(sorted({t.action for t in self.transitions if t.from_state == state}))


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BALANCE_AVAILABLE = Guard(
    name="balance_available",
    description="Lot has unreserved board feet",
)

REVERSAL = Guard(
    name="reversal",
    description="Explicit reversal of recorded consumption",
)

logger.info(
    "tally_workflow_guards_defined",
    extra={
        "guards": [
            BALANCE_AVAILABLE.name,
            REVERSAL.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Lot Workflow
# -----------------------------------------------------------------------------

_LIVE_STATES = ("draft", "open", "partial", "allocated")

LOT_WORKFLOW = Workflow(
    name="tally_lot",
    description="Tally sheet balance lifecycle",
    initial_state="open",
    states=(
        "draft",
        "open",
        "partial",
        "allocated",
        "consumed",
        "closed",
        "void",
    ),
    transitions=(
        Transition("draft", "open", action="activate"),
        Transition("open", "allocated", action="reserve", guard=BALANCE_AVAILABLE),
        Transition("partial", "allocated", action="reserve", guard=BALANCE_AVAILABLE),
        Transition("allocated", "open", action="release"),
        Transition("allocated", "partial", action="release"),
        Transition("open", "partial", action="consume", changes_balance=True),
        Transition("allocated", "partial", action="consume", changes_balance=True),
        Transition("open", "consumed", action="consume", changes_balance=True),
        Transition("partial", "consumed", action="consume", changes_balance=True),
        Transition("allocated", "consumed", action="consume", changes_balance=True),
        Transition("partial", "open", action="reverse", guard=REVERSAL, changes_balance=True),
        Transition("consumed", "partial", action="reverse", guard=REVERSAL, changes_balance=True),
        Transition("consumed", "open", action="reverse", guard=REVERSAL, changes_balance=True),
        Transition("consumed", "allocated", action="reverse", guard=REVERSAL, changes_balance=True),
        *(Transition(state, "closed", action="close") for state in (*_LIVE_STATES, "consumed")),
        *(Transition(state, "void", action="void") for state in _LIVE_STATES),
    ),
    terminal_states=("closed", "void"),
)

logger.info(
    "tally_lot_workflow_registered",
    extra={
        "workflow_name": LOT_WORKFLOW.name,
        "state_count": len(LOT_WORKFLOW.states),
        "transition_count": len(LOT_WORKFLOW.transitions),
        "initial_state": LOT_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Allocation Workflow
# -----------------------------------------------------------------------------

ALLOCATION_WORKFLOW = Workflow(
    name="tally_allocation",
    description="Reservation of lot board feet against a demand",
    initial_state="allocated",
    states=(
        "allocated",
        "consumed",
        "released",
    ),
    transitions=(
        Transition("allocated", "consumed", action="consume", changes_balance=True),
        Transition("allocated", "released", action="release"),
        Transition("consumed", "released", action="reverse", guard=REVERSAL, changes_balance=True),
    ),
    terminal_states=("released",),
)

logger.info(
    "tally_allocation_workflow_registered",
    extra={
        "workflow_name": ALLOCATION_WORKFLOW.name,
        "state_count": len(ALLOCATION_WORKFLOW.states),
        "transition_count": len(ALLOCATION_WORKFLOW.transitions),
        "initial_state": ALLOCATION_WORKFLOW.initial_state,
    },
)
