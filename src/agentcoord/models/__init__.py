"""Pydantic data models for agentcoord state documents.

This package defines the documents kept in the state directory:
- Lock records (LockRecord, LockMode)
- Worker resource profiles and planning results (ResourceProfile, Conflict, ...)
- Workflow traces (WorkflowTrace, TraceStep)
- Sessions and checkpoints (Session, Checkpoint)
- Health reports (HealthReport)

Persisted models derive from WireModel and are written with camelCase keys.

Example:
    >>> from agentcoord.models import LockMode, LockRecord
    >>> record = LockRecord(agent="corpus-enricher", mode=LockMode.WRITE, lock_id="x")
    >>> record.to_json()
"""

from .base import WireModel, epoch_ms
from .health import ComponentHealth, HealthReport, HealthStatus
from .lock import LockMode, LockRecord
from .payload import JsonPayload, Payload, TextPayload, parse_cli_payload, to_payload
from .resources import (
    AccessMode,
    CompletedWork,
    Conflict,
    ParallelCheck,
    Recommendation,
    RegistryMetadata,
    ResourceProfile,
    WorkEntry,
    WorkRegistryDocument,
)
from .session import (
    COMPLETION_DESCRIPTION,
    Checkpoint,
    CheckpointMetadata,
    CheckpointState,
    GlobalAnalytics,
    InitialState,
    PlannedStep,
    Session,
    SessionAnalytics,
    SessionMetadata,
    SessionStatus,
    WorkflowState,
)
from .trace import StepStatus, TraceAnalysis, TraceStep, WorkflowStatus, WorkflowTrace

__all__ = [
    "COMPLETION_DESCRIPTION",
    "AccessMode",
    "Checkpoint",
    "CheckpointMetadata",
    "CheckpointState",
    "CompletedWork",
    "ComponentHealth",
    "Conflict",
    "GlobalAnalytics",
    "HealthReport",
    "HealthStatus",
    "InitialState",
    "JsonPayload",
    "LockMode",
    "LockRecord",
    "ParallelCheck",
    "Payload",
    "PlannedStep",
    "Recommendation",
    "RegistryMetadata",
    "ResourceProfile",
    "Session",
    "SessionAnalytics",
    "SessionMetadata",
    "SessionStatus",
    "StepStatus",
    "TextPayload",
    "TraceAnalysis",
    "TraceStep",
    "WireModel",
    "WorkEntry",
    "WorkRegistryDocument",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowTrace",
    "epoch_ms",
    "parse_cli_payload",
    "to_payload",
]
