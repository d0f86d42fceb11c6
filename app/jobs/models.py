"""Job record and its state machine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
import uuid

from app.errors import InvalidTransition


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})

# active -> waiting is only used for a retry re-enqueue
ALLOWED_TRANSITIONS = {
    JobState.WAITING: frozenset({JobState.ACTIVE}),
    JobState.ACTIVE: frozenset({JobState.WAITING, JobState.COMPLETED, JobState.FAILED}),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Transition(BaseModel):
    state: JobState
    at: datetime
    reason: Optional[str] = None


class Job(BaseModel):
    """Tracks the lifecycle of one disease-detection request."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    state: JobState = JobState.WAITING
    attempts: int = 0
    image_key: str = ""
    mime_type: str = "application/octet-stream"
    filename: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    # Composed pipeline output waiting for its Record Store write
    pending_result: Optional[Dict[str, Any]] = None
    failure_reason: Optional[str] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    history: List[Transition] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, new_state: JobState, reason: Optional[str] = None) -> "Job":
        """Return a copy of the job moved to ``new_state``.

        Raises InvalidTransition for anything the state machine does not allow.
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"Job {self.id}: {self.state.value} -> {new_state.value} is not allowed"
            )
        now = utcnow()
        job = self.model_copy(deep=True)
        job.state = new_state
        job.history.append(Transition(state=new_state, at=now, reason=reason))
        if new_state == JobState.ACTIVE:
            job.attempts += 1
            job.started_at = now
        elif new_state in TERMINAL_STATES:
            job.finished_at = now
        if reason is not None:
            job.failure_reason = reason
        return job
