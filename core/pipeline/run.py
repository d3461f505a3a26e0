"""Pipeline run state machine.

RECEIVED -> SEGMENTED -> CLASSIFYING -> (EMBEDDING) -> AGGREGATING -> COMPLETED
FAILED is reachable from any non-terminal state.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from core.errors import InvalidTransitionError


class PipelineState(str, Enum):
    """Processing state of one document."""
    RECEIVED = "received"
    SEGMENTED = "segmented"
    CLASSIFYING = "classifying"
    EMBEDDING = "embedding"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED)


ALLOWED_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.RECEIVED: frozenset({PipelineState.SEGMENTED}),
    PipelineState.SEGMENTED: frozenset({PipelineState.CLASSIFYING}),
    PipelineState.CLASSIFYING: frozenset({PipelineState.EMBEDDING, PipelineState.AGGREGATING}),
    PipelineState.EMBEDDING: frozenset({PipelineState.AGGREGATING}),
    PipelineState.AGGREGATING: frozenset({PipelineState.COMPLETED}),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.FAILED: frozenset(),
}


@dataclass
class StateChange:
    state: PipelineState
    at: datetime


@dataclass
class PipelineRun:
    """Tracks one document through the pipeline and carries its cancel signal.

    ``cancel()`` must be called from the event loop thread running the
    pipeline.
    """
    run_id: UUID = field(default_factory=uuid4)
    contract_id: UUID | None = None
    state: PipelineState = PipelineState.RECEIVED
    failure_reason: str | None = None
    history: list[StateChange] = field(default_factory=list)
    _cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(StateChange(self.state, datetime.now(timezone.utc)))

    def transition(self, new_state: PipelineState) -> None:
        """Move to ``new_state``.

        Raises:
            InvalidTransitionError: If the move is not allowed from the current state.
        """
        if new_state == PipelineState.FAILED:
            if self.state.is_terminal:
                raise InvalidTransitionError(f"Cannot fail a run in terminal state {self.state.value}")
        elif new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Illegal transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(StateChange(new_state, datetime.now(timezone.utc)))

    def fail(self, reason: str) -> None:
        """Mark the run failed. No-op if already terminal."""
        if self.state.is_terminal:
            return
        self.failure_reason = reason
        self.transition(PipelineState.FAILED)

    def cancel(self) -> None:
        """Request cancellation; no new clause calls are issued afterwards."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    async def wait_cancelled(self) -> None:
        await self._cancel_event.wait()

    @property
    def states(self) -> list[PipelineState]:
        """Visited states in order."""
        return [change.state for change in self.history]
