"""Core coordination logic for agentcoord.

This package holds the file-backed coordination primitives:
- store: Atomic JSON document repository
- lock_manager: Reader/writer locks per resource with stale-lock reaping
- planner: Resource conflict checks and phase planning for agent batches
- work_registry: Registry of work in progress
- tracer: Workflow step tracing and analysis
- checkpoints: Resumable sessions with checkpoint history
- health: Health summary over all of the above
"""

from .checkpoints import SessionStore
from .health import HealthMonitor
from .lock_manager import LockHandle, LockManager, is_compatible
from .planner import DEFAULT_PROFILES, ResourcePlanner
from .store import DocumentStore
from .tracer import WorkflowTracer
from .work_registry import WorkRegistry

__all__ = [
    "DEFAULT_PROFILES",
    "DocumentStore",
    "HealthMonitor",
    "LockHandle",
    "LockManager",
    "ResourcePlanner",
    "SessionStore",
    "WorkRegistry",
    "WorkflowTracer",
    "is_compatible",
]
