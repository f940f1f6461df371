"""Pipeline state models for RenoCost.

Tracks the state machine of a single estimate generation run.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, Field


class PipelineState(str, Enum):
    """States of one estimate generation run."""

    IDLE = "idle"
    CASCADING = "cascading"
    VISION_ATTEMPT = "vision_attempt"
    PAYLOAD_REJECTED = "payload_rejected"
    TEXT_ONLY_RETRY = "text_only_retry"
    SUCCEEDED = "succeeded"
    NORMALIZING = "normalizing"
    SYNTHESIZING = "synthesizing"
    COMPLETE = "complete"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PipelineState.COMPLETE, PipelineState.FAILED})


class PipelineTransition(BaseModel):
    """A single recorded state change."""

    state: PipelineState
    at: datetime = Field(default_factory=datetime.utcnow)
    detail: Dict[str, Any] = Field(default_factory=dict)


class PipelineTrace(BaseModel):
    """Per-invocation record of state transitions.

    Owned by the caller of one run; never shared between runs.
    """

    transitions: List[PipelineTransition] = Field(default_factory=list)
    failure_code: Optional[str] = None

    def record(self, state: PipelineState, **detail: Any) -> None:
        self.transitions.append(PipelineTransition(state=state, detail=detail))

    @property
    def states(self) -> List[PipelineState]:
        return [t.state for t in self.transitions]

    @property
    def current(self) -> PipelineState:
        if not self.transitions:
            return PipelineState.IDLE
        return self.transitions[-1].state

    @property
    def tiers_attempted(self) -> List[int]:
        """Tier indexes entered, in order."""
        return [
            t.detail["tier"] for t in self.transitions
            if t.state == PipelineState.CASCADING and "tier" in t.detail
        ]

    @property
    def is_terminal(self) -> bool:
        return self.current in TERMINAL_STATES
