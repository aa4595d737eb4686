"""Workflow tracing for multi-agent runs.

Each workflow is one document in ``traces/`` holding its ordered steps.
Every mutating call rewrites the whole document, so a single caller is
expected to drive any one workflow id; concurrent writers to the same id
race and the last write wins.

Alongside the documents, ``workflow.log`` receives one line per event::

    2026-01-04T12:00:00.000Z|WORKFLOW_START|wf-123|Medieval sword research
    2026-01-04T12:00:01.000Z|STEP|wf-123|corpus-searcher|Search corpus
    2026-01-04T12:00:02.500Z|COMPLETE|wf-123|corpus-searcher|1500ms
    2026-01-04T12:00:03.000Z|WORKFLOW_END|wf-123|success|3000ms

The log is for tailing only; failures to write it are ignored.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from ..config import CoordConfig
from ..errors import InvalidTransitionError, StepNotFoundError, WorkflowNotFoundError
from ..models import (
    StepStatus,
    TraceAnalysis,
    TraceStep,
    WorkflowStatus,
    WorkflowTrace,
    epoch_ms,
    to_payload,
)
from .store import DocumentStore

logger = logging.getLogger(__name__)


def _log_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WorkflowTracer:
    """Records workflow steps to traces/<workflowId>.json."""

    def __init__(self, config: CoordConfig) -> None:
        self.config = config
        self._store = DocumentStore(config.trace_dir, WorkflowTrace)
        self.log_path = config.workflow_log

    def start(self, workflow_id: str, description: str, domain: str = "unknown") -> WorkflowTrace:
        """Create a new running workflow.

        Raises:
            InvalidTransitionError: If a trace with this id already exists
        """
        trace = WorkflowTrace(workflow_id=workflow_id, description=description, domain=domain)
        if not self._store.create(workflow_id, trace):
            raise InvalidTransitionError(f"Workflow already exists: {workflow_id}")
        self._append_log("WORKFLOW_START", workflow_id, description)
        logger.info("[%s] Workflow started: %s", workflow_id, description)
        return trace

    def step(self, workflow_id: str, agent: str, action: str, data: Any = None) -> int:
        """Open a running step and return its id."""
        trace = self._load(workflow_id)
        if trace.status.is_terminal:
            raise InvalidTransitionError(
                f"Workflow {workflow_id} already finished ({trace.status.value})"
            )
        step = TraceStep(
            step_id=len(trace.steps),
            agent=agent,
            action=action,
            data=to_payload(data),
        )
        trace.steps.append(step)
        self._store.put(workflow_id, trace)
        self._append_log("STEP", workflow_id, agent, action)
        logger.info("[%s] Step %d: %s - %s", workflow_id, step.step_id, agent, action)
        return step.step_id

    def complete(self, workflow_id: str, step_id: int, result: Any = None) -> TraceStep:
        """Mark a running step completed."""
        step = self._resolve(workflow_id, step_id, StepStatus.COMPLETED, result=result)
        self._append_log("COMPLETE", workflow_id, step.agent, f"{step.duration}ms")
        logger.info(
            "[%s] Step %d: %s completed (%dms)", workflow_id, step_id, step.agent, step.duration
        )
        return step

    def error(self, workflow_id: str, step_id: int, message: str) -> TraceStep:
        """Mark a running step failed."""
        step = self._resolve(workflow_id, step_id, StepStatus.ERROR, error=message)
        self._append_log("ERROR", workflow_id, step.agent, message)
        logger.warning("[%s] Step %d: %s failed - %s", workflow_id, step_id, step.agent, message)
        return step

    def finish(
        self, workflow_id: str, status: WorkflowStatus | str = WorkflowStatus.SUCCESS
    ) -> WorkflowTrace:
        """Set the workflow's terminal status and total duration."""
        status = WorkflowStatus(status)
        if not status.is_terminal:
            raise InvalidTransitionError("Workflow can only finish as success, error or partial")
        trace = self._load(workflow_id)
        if trace.status.is_terminal:
            raise InvalidTransitionError(
                f"Workflow {workflow_id} already finished ({trace.status.value})"
            )
        trace.end_time = max(epoch_ms(), trace.start_time)
        trace.total_duration = trace.end_time - trace.start_time
        trace.status = status
        self._store.put(workflow_id, trace)
        self._append_log("WORKFLOW_END", workflow_id, status.value, f"{trace.total_duration}ms")
        logger.info(
            "[%s] Workflow finished: %s (%dms)", workflow_id, status.value, trace.total_duration
        )
        return trace

    def timeline(self, workflow_id: str) -> WorkflowTrace:
        """Load the full trace for display."""
        return self._load(workflow_id)

    def list_workflows(self, limit: int | None = None) -> list[WorkflowTrace]:
        """Most recently started workflows first. Malformed traces are skipped."""
        limit = self.config.traces.list_limit if limit is None else limit
        traces = sorted(self._store.load_all(), key=lambda t: t.start_time, reverse=True)
        return traces[:limit]

    def analyze(self, workflow_id: str) -> TraceAnalysis:
        """Step counts and duration statistics for one workflow."""
        trace = self._load(workflow_id)
        durations = [s.duration for s in trace.steps if s.duration is not None]
        failures = trace.steps_with_status(StepStatus.ERROR)
        in_progress = trace.steps_with_status(StepStatus.RUNNING)
        return TraceAnalysis(
            workflow_id=workflow_id,
            status=trace.status,
            total_steps=len(trace.steps),
            completed_steps=len(trace.steps_with_status(StepStatus.COMPLETED)),
            failed_steps=len(failures),
            running_steps=len(in_progress),
            average_duration=round(sum(durations) / len(durations)) if durations else None,
            max_duration=max(durations, default=None),
            min_duration=min(durations, default=None),
            failures=failures,
            in_progress=in_progress,
        )

    def _load(self, workflow_id: str) -> WorkflowTrace:
        trace = self._store.get(workflow_id)
        if trace is None:
            raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
        return trace

    def _resolve(
        self,
        workflow_id: str,
        step_id: int,
        status: StepStatus,
        result: Any = None,
        error: str | None = None,
    ) -> TraceStep:
        trace = self._load(workflow_id)
        step = trace.get_step(step_id)
        if step is None:
            raise StepNotFoundError(f"Workflow {workflow_id} has no step {step_id}")
        if step.is_resolved:
            raise InvalidTransitionError(
                f"Step {step_id} of {workflow_id} is already {step.status.value}"
            )
        step.end_time = max(epoch_ms(), step.start_time)
        step.duration = step.end_time - step.start_time
        step.status = status
        step.result = to_payload(result)
        step.error = error
        self._store.put(workflow_id, trace)
        return step

    def _append_log(self, event: str, workflow_id: str, *fields: str) -> None:
        parts = [_log_timestamp(), event, workflow_id, *fields]
        line = "|".join(str(p).replace("\n", " ") for p in parts)
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.debug("Could not write workflow log: %s", e)
