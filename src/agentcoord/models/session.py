"""Session and checkpoint models for resumable multi-phase work.

A session document carries its full checkpoint history plus denormalised
"current" fields (phase, completed steps, workflow state) that are updated
from each checkpoint, so resuming never has to replay the history.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import ConfigDict, Field

from .base import WireModel

COMPLETION_DESCRIPTION = "WORKFLOW_COMPLETED"
INITIAL_PHASE = "planning"
COMPLETED_PHASE = "completed"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class PlannedStep(WireModel):
    """A step the workflow intends to run. Extra keys are preserved."""

    model_config = ConfigDict(extra="allow")

    agent: str = "unknown"
    description: str = ""


class WorkflowState(WireModel):
    """Workflow progress and variables carried by a session.

    Attributes:
        workflow_id: Trace id of the workflow driving the session.
        current_step: Index into ``steps`` of the step in progress.
        steps: Planned steps.
        context: Free-form context the caller needs to continue.
        variables: Named workflow variables.
        last_agent: Agent that produced the latest output.
        last_output: Latest output, as recorded by the caller.
    """

    workflow_id: str
    current_step: int = 0
    steps: list[PlannedStep] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)
    last_agent: str | None = None
    last_output: Any = None


class InitialState(WireModel):
    """Optional inputs for creating a session."""

    workflow_id: str | None = None
    estimated_steps: int = 0
    context: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)
    estimated_duration: str = "unknown"
    complexity: str = "high"
    requires_user_input: bool = False


class CheckpointState(WireModel):
    """Caller-supplied snapshot for a checkpoint.

    Fields left as ``None`` keep the session's current values.
    """

    current_step: int | None = None
    steps: list[PlannedStep] | None = None
    context: dict[str, Any] | None = None
    variables: dict[str, Any] | None = None
    last_agent: str | None = None
    last_output: Any = None
    completed_steps: int | None = None
    phase: str | None = None
    active_agents: list[str] = Field(default_factory=list)
    memory_usage: int | None = None


class CheckpointMetadata(WireModel):
    duration_ms: int
    memory_usage: int | None = None
    active_agents: list[str] = Field(default_factory=list)


class Checkpoint(WireModel):
    """Durable snapshot sufficient to resume a session."""

    checkpoint_id: str
    session_id: str
    timestamp: datetime
    description: str
    phase: str
    completed_steps: int
    workflow_state: WorkflowState
    metadata: CheckpointMetadata


class SessionMetadata(WireModel):
    estimated_duration: str = "unknown"
    complexity: str = "high"
    requires_user_input: bool = False


class Session(WireModel):
    """Session document written to sessions/<sessionId>.json."""

    session_id: str
    title: str
    domain: str
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.now)
    last_updated: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None
    current_phase: str = INITIAL_PHASE
    total_steps: int = 0
    completed_steps: int = 0
    workflow: WorkflowState
    checkpoints: list[Checkpoint] = Field(default_factory=list)
    metadata: SessionMetadata = Field(default_factory=SessionMetadata)

    @property
    def last_checkpoint(self) -> Checkpoint | None:
        return self.checkpoints[-1] if self.checkpoints else None

    @property
    def is_recoverable(self) -> bool:
        """Active with at least one checkpoint to resume from."""
        return self.status is SessionStatus.ACTIVE and bool(self.checkpoints)

    def next_action(self) -> PlannedStep | None:
        """Planned step after the one recorded in the last checkpoint."""
        checkpoint = self.last_checkpoint
        if checkpoint is None:
            return None
        state = checkpoint.workflow_state
        next_index = state.current_step + 1
        if 0 <= next_index < len(state.steps):
            return state.steps[next_index]
        return None


class SessionAnalytics(WireModel):
    session_id: str
    title: str
    domain: str
    status: SessionStatus
    created_at: datetime
    duration_hours: float | None = None
    completed_steps: int
    total_steps: int
    checkpoint_count: int
    average_interval_minutes: float | None = None
    timeline: list[tuple[datetime, str]] = Field(default_factory=list)


class GlobalAnalytics(WireModel):
    total_sessions: int
    by_status: dict[str, int] = Field(default_factory=dict)
    by_domain: dict[str, int] = Field(default_factory=dict)
    average_completion_hours: float | None = None
