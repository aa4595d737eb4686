"""Resource profiles and planning results for worker batches."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import WireModel


class AccessMode(str, Enum):
    """How a worker type touches its resources."""

    READ = "READ"
    WRITE = "WRITE"
    EXTERNAL = "EXTERNAL"
    COMPUTE = "COMPUTE"


class ResourceProfile(BaseModel):
    """Static access profile for one worker type.

    Attributes:
        access: Access mode for the worker's resources.
        resources: Named resources the worker touches.
        conflicts: Worker types this worker must not run alongside.
    """

    model_config = ConfigDict(frozen=True)

    access: AccessMode
    resources: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()


class Conflict(WireModel):
    """A pair of workers that must not share a phase."""

    first: str
    second: str
    reason: str


class ParallelCheck(WireModel):
    """Result of checking a batch for pairwise conflicts."""

    safe: bool
    conflicts: list[Conflict] = Field(default_factory=list)
    phases: list[list[str]] = Field(default_factory=list)
    recommendation: Literal["parallel", "sequential"] = "parallel"


class Recommendation(WireModel):
    """Execution strategy for a batch.

    Attributes:
        safe: True when the whole batch fits in one phase.
        phases: Conflict-free phases, run in order.
        efficiency: Largest phase size as a percentage of the batch.
        speedup: Batch size divided by phase count.
        conflicts: Conflicts that forced the split.
    """

    safe: bool
    phases: list[list[str]]
    efficiency: int
    speedup: float
    conflicts: list[Conflict] = Field(default_factory=list)


class WorkEntry(WireModel):
    """Work currently registered by an agent."""

    agent: str
    description: str = ""
    start_time: int
    pid: int


class CompletedWork(WorkEntry):
    """Work moved out of the active set on unregister."""

    end_time: int
    duration: int


class RegistryMetadata(WireModel):
    created: int
    version: str


class WorkRegistryDocument(WireModel):
    """Active-work registry shared by all agents."""

    active_work: dict[str, WorkEntry] = Field(default_factory=dict)
    completed_work: list[CompletedWork] = Field(default_factory=list)
    metadata: RegistryMetadata
