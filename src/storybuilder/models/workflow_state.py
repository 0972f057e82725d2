"""Run state machine states and the per-run transition trace."""

import logging
from enum import Enum

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """
    States a single model run moves through.

    PENDING -> GENERATING -> VALIDATING -> (REPAIRING) -> SCORING -> DONE.
    Generation failures and invalid output jump straight to SCORING.
    """

    PENDING = "pending"
    GENERATING = "generating"
    VALIDATING = "validating"
    REPAIRING = "repairing"
    SCORING = "scoring"
    DONE = "done"


ALLOWED_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.PENDING: {RunState.GENERATING},
    RunState.GENERATING: {RunState.VALIDATING, RunState.SCORING},
    RunState.VALIDATING: {RunState.REPAIRING, RunState.SCORING},
    RunState.REPAIRING: {RunState.SCORING},
    RunState.SCORING: {RunState.DONE},
    RunState.DONE: set(),
}


class RunTrace(BaseModel):
    """Ordered record of the states one run visited."""

    run_id: str
    model_id: str
    states: list[RunState] = Field(default_factory=lambda: [RunState.PENDING])

    @property
    def current(self) -> RunState:
        return self.states[-1]

    def advance(self, state: RunState) -> None:
        """Move to the next state, rejecting transitions the machine does not allow."""
        if state not in ALLOWED_TRANSITIONS[self.current]:
            raise ValueError(f"Illegal run transition: {self.current.value} -> {state.value}")
        self.states.append(state)
        logger.info(f"run_id={self.run_id[:8]} model={self.model_id} state={state.value}")

    def visited(self, state: RunState) -> bool:
        return state in self.states

    def as_list(self) -> list[str]:
        return [s.value for s in self.states]
