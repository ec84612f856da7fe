"""Tier chaining: gate and state machine for the dependent hourly tier."""

from systest.chain.controller import ChainReport, TierChainController
from systest.chain.state_machine import (
    CHAIN_TRANSITION_REGISTRY,
    ChainState,
    ChainStateMachine,
    ChainTransition,
    is_chain_terminal_state,
    should_chain,
    validate_chain_transition,
)

__all__ = [
    "CHAIN_TRANSITION_REGISTRY",
    "ChainReport",
    "ChainState",
    "ChainStateMachine",
    "ChainTransition",
    "TierChainController",
    "is_chain_terminal_state",
    "should_chain",
    "validate_chain_transition",
]
