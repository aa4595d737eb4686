"""Workflow trace models.

A trace is one document per workflow holding an ordered list of steps.
Step ids are positions in that list and are never reused.
"""

import getpass
import socket
from enum import Enum

from pydantic import Field

from ..constants import FORMAT_VERSION
from .base import WireModel, epoch_ms
from .payload import Payload


class WorkflowStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    PARTIAL = "partial"

    @property
    def is_terminal(self) -> bool:
        return self is not WorkflowStatus.RUNNING


class StepStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class TraceMetadata(WireModel):
    user: str = Field(default_factory=_current_user)
    host: str = Field(default_factory=socket.gethostname)
    version: str = FORMAT_VERSION


class TraceStep(WireModel):
    """One unit of work attributed to an agent.

    Attributes:
        step_id: Position in the workflow's step list.
        agent: Agent that performed the step.
        action: What the agent did.
        start_time: Epoch ms when the step was opened.
        end_time: Epoch ms when the step was resolved.
        status: running, completed or error.
        duration: end_time - start_time once resolved.
        data: Input payload recorded with the step.
        result: Output payload recorded on completion.
        error: Error message recorded on failure.
    """

    step_id: int
    agent: str
    action: str
    start_time: int = Field(default_factory=epoch_ms)
    end_time: int | None = None
    status: StepStatus = StepStatus.RUNNING
    duration: int | None = None
    data: Payload | None = None
    result: Payload | None = None
    error: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status is not StepStatus.RUNNING


class WorkflowTrace(WireModel):
    """Trace document written to traces/<workflowId>.json."""

    workflow_id: str
    description: str
    domain: str = "unknown"
    start_time: int = Field(default_factory=epoch_ms)
    end_time: int | None = None
    total_duration: int | None = None
    status: WorkflowStatus = WorkflowStatus.RUNNING
    steps: list[TraceStep] = Field(default_factory=list)
    metadata: TraceMetadata = Field(default_factory=TraceMetadata)

    def get_step(self, step_id: int) -> TraceStep | None:
        if 0 <= step_id < len(self.steps):
            return self.steps[step_id]
        return None

    def steps_with_status(self, status: StepStatus) -> list[TraceStep]:
        return [s for s in self.steps if s.status is status]


class TraceAnalysis(WireModel):
    """Summary statistics for one workflow."""

    workflow_id: str
    status: WorkflowStatus
    total_steps: int
    completed_steps: int
    failed_steps: int
    running_steps: int
    average_duration: int | None = None
    max_duration: int | None = None
    min_duration: int | None = None
    failures: list[TraceStep] = Field(default_factory=list)
    in_progress: list[TraceStep] = Field(default_factory=list)
