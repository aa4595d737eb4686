"""Health report models."""

from enum import Enum
from typing import Any

from pydantic import Field

from .base import WireModel, epoch_ms


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.WARNING: 1, HealthStatus.ERROR: 2}


def worst(statuses: list[HealthStatus]) -> HealthStatus:
    """Most severe status, healthy when empty."""
    return max(statuses, key=_SEVERITY.__getitem__, default=HealthStatus.HEALTHY)


class ComponentHealth(WireModel):
    status: HealthStatus = HealthStatus.HEALTHY
    issues: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)

    def warn(self, issue: str) -> None:
        self.issues.append(issue)
        self.status = worst([self.status, HealthStatus.WARNING])


class HealthReport(WireModel):
    """Snapshot of the coordination state directory."""

    timestamp: int = Field(default_factory=epoch_ms)
    overall: HealthStatus = HealthStatus.HEALTHY
    components: dict[str, ComponentHealth] = Field(default_factory=dict)

    @property
    def issues(self) -> list[str]:
        return [issue for c in self.components.values() for issue in c.issues]
