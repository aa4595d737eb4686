"""Health summary of the coordination state directory."""

import logging
from collections.abc import Callable

from ..config import CoordConfig
from ..constants import HEALTH_ID, HEALTH_RECENT_WORKFLOWS
from ..models import (
    ComponentHealth,
    HealthReport,
    HealthStatus,
    SessionStatus,
    WorkflowStatus,
    epoch_ms,
)
from ..models.health import worst
from .checkpoints import SessionStore
from .lock_manager import LockManager
from .store import DocumentStore
from .tracer import WorkflowTracer
from .work_registry import WorkRegistry

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Builds a HealthReport from locks, registry, sessions and traces."""

    def __init__(self, config: CoordConfig) -> None:
        self.config = config
        self._reports = DocumentStore(config.health_dir, HealthReport)

    def check(self, save: bool = True) -> HealthReport:
        """Inspect every component and return the report.

        Args:
            save: Also write the report to health/system-health.json
        """
        checks = {
            "locks": self._check_locks,
            "coordination": self._check_coordination,
            "sessions": self._check_sessions,
            "workflows": self._check_workflows,
        }
        components = {name: self._run(name, fn) for name, fn in checks.items()}
        report = HealthReport(
            timestamp=epoch_ms(),
            overall=worst([c.status for c in components.values()]),
            components=components,
        )
        if save:
            self.save(report)
        return report

    @staticmethod
    def _run(name: str, check: Callable[[], ComponentHealth]) -> ComponentHealth:
        try:
            return check()
        except OSError as e:
            logger.warning("Health check %s failed: %s", name, e)
            return ComponentHealth(status=HealthStatus.ERROR, issues=[f"{name}: {e}"])

    def save(self, report: HealthReport) -> None:
        try:
            self._reports.put(HEALTH_ID, report)
        except OSError as e:
            logger.debug("Could not save health report: %s", e)

    def _resources(self) -> list[str]:
        names = {self.config.locks.default_resource}
        if self.config.lock_dir.is_dir():
            names.update(
                p.name
                for p in self.config.lock_dir.iterdir()
                if p.is_dir() and not p.name.startswith(".")
            )
        return sorted(names)

    def _check_locks(self) -> ComponentHealth:
        health = ComponentHealth()
        timeout = self.config.locks.stale_timeout
        now = epoch_ms()
        active = 0
        stale = 0
        for resource in self._resources():
            for record in LockManager(self.config, resource).status():
                active += 1
                if record.is_stale(timeout, now):
                    stale += 1
                    health.warn(
                        f"Stale {record.mode.value} lock on {resource}: {record.agent} "
                        f"({record.age_ms(now) // 1000}s old)"
                    )
        health.metrics = {"activeLocks": active, "staleLocks": stale}
        return health

    def _check_coordination(self) -> ComponentHealth:
        registry = WorkRegistry(self.config).load()
        return ComponentHealth(
            metrics={
                "activeWork": len(registry.active_work),
                "completedWork": len(registry.completed_work),
            }
        )

    def _check_sessions(self) -> ComponentHealth:
        sessions = SessionStore(self.config).list_sessions()
        return ComponentHealth(
            metrics={
                "totalSessions": len(sessions),
                "activeSessions": sum(s.status is SessionStatus.ACTIVE for s in sessions),
                "recoverableSessions": sum(s.is_recoverable for s in sessions),
            }
        )

    def _check_workflows(self) -> ComponentHealth:
        health = ComponentHealth()
        recent = WorkflowTracer(self.config).list_workflows(limit=HEALTH_RECENT_WORKFLOWS)
        failed = [t for t in recent if t.status is WorkflowStatus.ERROR]
        for trace in failed:
            health.warn(f"Workflow {trace.workflow_id} failed: {trace.description}")
        health.metrics = {
            "recentWorkflows": len(recent),
            "running": sum(t.status is WorkflowStatus.RUNNING for t in recent),
            "success": sum(t.status is WorkflowStatus.SUCCESS for t in recent),
            "error": len(failed),
        }
        return health
