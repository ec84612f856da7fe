"""State machine for chaining the hourly tier off a primary run.

State flow (chaining depth is exactly one):
  IDLE
    -> PRIMARY_RUNNING          (intent dispatched)
    -> AWAITING_CHAIN_DECISION  (primary RunResult received)
    -> SECONDARY_RUNNING        (scheduled trigger and primary succeeded)
    -> DONE                     (secondary RunResult received, any outcome)
  AWAITING_CHAIN_DECISION -> DONE when the chain gate is closed.
  Terminal: DONE

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from systest.errors import ChainStateError
from systest.models import RunResult, RunStatus
from systest.trigger.events import ManualRequest, RepositoryChange, Scheduled

logger = logging.getLogger(__name__)


class ChainState(str, Enum):
    """States of a tier chain."""

    IDLE = "idle"
    PRIMARY_RUNNING = "primary_running"
    AWAITING_CHAIN_DECISION = "awaiting_chain_decision"
    SECONDARY_RUNNING = "secondary_running"
    DONE = "done"


_CHAIN_TERMINAL_STATES: frozenset[ChainState] = frozenset([ChainState.DONE])


@dataclass(frozen=True)
class ChainTransition:
    """Describes a single state transition in the chain state machine.

    Attributes:
        from_state: State before this transition
        to_state: State after this transition
        description: Human-readable description for logging

    """

    from_state: ChainState
    to_state: ChainState
    description: str


# Registry of all valid chain transitions
CHAIN_TRANSITION_REGISTRY: list[ChainTransition] = [
    ChainTransition(
        from_state=ChainState.IDLE,
        to_state=ChainState.PRIMARY_RUNNING,
        description="Dispatch primary tier",
    ),
    ChainTransition(
        from_state=ChainState.PRIMARY_RUNNING,
        to_state=ChainState.AWAITING_CHAIN_DECISION,
        description="Primary result received",
    ),
    ChainTransition(
        from_state=ChainState.AWAITING_CHAIN_DECISION,
        to_state=ChainState.SECONDARY_RUNNING,
        description="Dispatch secondary tier",
    ),
    ChainTransition(
        from_state=ChainState.AWAITING_CHAIN_DECISION,
        to_state=ChainState.DONE,
        description="Chain gate closed",
    ),
    ChainTransition(
        from_state=ChainState.SECONDARY_RUNNING,
        to_state=ChainState.DONE,
        description="Secondary result received",
    ),
]

_CHAIN_TRANSITIONS: dict[tuple[ChainState, ChainState], ChainTransition] = {
    (t.from_state, t.to_state): t for t in CHAIN_TRANSITION_REGISTRY
}


def validate_chain_transition(from_state: ChainState, to_state: ChainState) -> bool:
    """Validate that a chain state transition is legal.

    Args:
        from_state: Current state
        to_state: Proposed next state

    Returns:
        True if transition is valid

    """
    return (from_state, to_state) in _CHAIN_TRANSITIONS


def is_chain_terminal_state(state: ChainState) -> bool:
    """Return True if this chain state requires no further transitions."""
    return state in _CHAIN_TERMINAL_STATES


def should_chain(
    event: Scheduled | ManualRequest | RepositoryChange,
    primary: RunResult,
) -> bool:
    """Decide whether the secondary tier runs after ``primary``.

    Only a scheduled trigger whose primary run succeeded chains. Failures,
    timeouts and every non-scheduled trigger close the gate.
    """
    return isinstance(event, Scheduled) and primary.status == RunStatus.SUCCESS


@dataclass
class ChainStateMachine:
    """Tracks the state of one chain and rejects illegal transitions.

    Attributes:
        label: Prefix for log messages (e.g. the CI run id)
        state: Current state
        history: Transitions taken so far, in order

    """

    label: str = "chain"
    state: ChainState = ChainState.IDLE
    history: list[ChainTransition] = field(default_factory=list)

    def is_complete(self) -> bool:
        """Return True once the chain reached a terminal state."""
        return is_chain_terminal_state(self.state)

    def transition(self, to_state: ChainState) -> ChainState:
        """Move to ``to_state``.

        Raises:
            ChainStateError: If the transition is not in the registry.

        """
        transition = _CHAIN_TRANSITIONS.get((self.state, to_state))
        if transition is None:
            raise ChainStateError(
                f"[{self.label}] Illegal chain transition {self.state.value} -> {to_state.value}"
            )
        logger.info(
            f"[{self.label}] {self.state.value} -> {to_state.value}: {transition.description}"
        )
        self.history.append(transition)
        self.state = to_state
        return self.state
