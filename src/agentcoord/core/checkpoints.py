"""Session checkpoints for long-running, multi-phase workflows.

A session is one document in ``sessions/``. Saving a checkpoint appends a
snapshot to the session's history and copies the snapshot's phase, step
count and workflow state into the session's current fields, so resuming
only needs the session header and the last checkpoint.

Each checkpoint is also written on its own to ``checkpoints/`` as a
recovery copy.

Completed sessions older than the archive cutoff are moved, unchanged, to
``sessions/archive/``.
"""

import logging
import re
import secrets
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, TypeVar

from ..config import CoordConfig
from ..errors import InvalidTransitionError, SessionNotFoundError
from ..models import (
    COMPLETION_DESCRIPTION,
    Checkpoint,
    CheckpointMetadata,
    CheckpointState,
    GlobalAnalytics,
    InitialState,
    Session,
    SessionAnalytics,
    SessionMetadata,
    SessionStatus,
    WireModel,
    WorkflowState,
    epoch_ms,
)
from ..models.session import COMPLETED_PHASE
from .store import DocumentStore

logger = logging.getLogger(__name__)

_FINISHED = (SessionStatus.COMPLETED, SessionStatus.ARCHIVED)

S = TypeVar("S", bound=WireModel)


def _coerce(model: type[S], value: S | dict[str, Any] | None) -> S:
    if value is None:
        return model()
    if isinstance(value, dict):
        return model.model_validate(value)
    return value


def _slug(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "general"


class SessionStore:
    """Creates, checkpoints, resumes and archives sessions."""

    def __init__(self, config: CoordConfig) -> None:
        self.config = config
        self._store = DocumentStore(config.session_dir, Session)
        self._checkpoints = DocumentStore(config.checkpoint_dir, Checkpoint)

    def create(
        self,
        title: str,
        domain: str,
        initial_state: InitialState | dict[str, Any] | None = None,
    ) -> Session:
        """Create an active session in the planning phase with no checkpoints."""
        initial = _coerce(InitialState, initial_state)
        stamp = epoch_ms()
        while True:
            session_id = f"session-{_slug(domain)}-{stamp}"
            session = Session(
                session_id=session_id,
                title=title,
                domain=domain,
                total_steps=initial.estimated_steps,
                workflow=WorkflowState(
                    workflow_id=initial.workflow_id or f"wf-{session_id}",
                    context=initial.context,
                    variables=initial.variables,
                ),
                metadata=SessionMetadata(
                    estimated_duration=initial.estimated_duration,
                    complexity=initial.complexity,
                    requires_user_input=initial.requires_user_input,
                ),
            )
            if self._store.create(session_id, session):
                break
            stamp += 1
        logger.info("Created session %s (%s)", session_id, title)
        return session

    def get(self, session_id: str) -> Session:
        return self._load(session_id)

    def save_checkpoint(
        self,
        session_id: str,
        state: CheckpointState | dict[str, Any] | None,
        description: str,
    ) -> Checkpoint:
        """Append a checkpoint and update the session's current fields from it.

        Raises:
            SessionNotFoundError: If the session does not exist
            InvalidTransitionError: If the session is completed or archived
        """
        session = self._load(session_id)
        if session.status in _FINISHED:
            raise InvalidTransitionError(
                f"Session {session_id} is {session.status.value}; no further checkpoints"
            )
        checkpoint = self._append_checkpoint(session, _coerce(CheckpointState, state), description)
        self._store.put(session_id, session)
        self._write_recovery_copy(checkpoint)
        logger.info(
            "Checkpoint saved: %s (%s) step %d/%d",
            checkpoint.checkpoint_id,
            description,
            session.completed_steps,
            session.total_steps,
        )
        return checkpoint

    def resume(self, session_id: str) -> Session:
        """Mark a session active again and return it.

        Safe to call repeatedly. Completed and archived sessions are returned
        unchanged. Callers continue from ``session.workflow`` and
        ``session.last_checkpoint``.
        """
        session = self._load(session_id)
        if session.status in _FINISHED:
            logger.info("Session %s is already %s", session_id, session.status.value)
            return session
        session.status = SessionStatus.ACTIVE
        session.last_updated = datetime.now()
        self._store.put(session_id, session)
        if session.last_checkpoint is None:
            logger.info("Resumed %s with no checkpoints; starting from the beginning", session_id)
        else:
            logger.info(
                "Resumed %s from checkpoint %s",
                session_id,
                session.last_checkpoint.checkpoint_id,
            )
        return session

    def pause(self, session_id: str) -> Session:
        """Mark an active session paused."""
        session = self._load(session_id)
        if session.status in _FINISHED:
            raise InvalidTransitionError(
                f"Cannot pause session {session_id}: already {session.status.value}"
            )
        if session.status is not SessionStatus.PAUSED:
            session.status = SessionStatus.PAUSED
            session.last_updated = datetime.now()
            self._store.put(session_id, session)
        return session

    def complete(
        self,
        session_id: str,
        final_state: CheckpointState | dict[str, Any] | None = None,
    ) -> Session:
        """Write a final completion checkpoint and mark the session completed."""
        session = self._load(session_id)
        if session.status in _FINISHED:
            raise InvalidTransitionError(
                f"Session {session_id} is already {session.status.value}"
            )
        checkpoint = self._append_checkpoint(
            session, _coerce(CheckpointState, final_state), COMPLETION_DESCRIPTION
        )
        session.status = SessionStatus.COMPLETED
        session.completed_at = checkpoint.timestamp
        session.last_updated = checkpoint.timestamp
        session.completed_steps = session.total_steps or len(session.checkpoints)
        session.current_phase = COMPLETED_PHASE
        self._store.put(session_id, session)
        self._write_recovery_copy(checkpoint)
        logger.info("Session completed: %s (%d checkpoints)", session_id, len(session.checkpoints))
        return session

    def list_sessions(
        self,
        status: SessionStatus | str | None = None,
        domain: str | None = None,
        recoverable: bool = False,
    ) -> list[Session]:
        """Sessions matching all given filters, most recently updated first."""
        sessions = self._store.load_all()
        if status is not None:
            status = SessionStatus(status)
            sessions = [s for s in sessions if s.status is status]
        if domain is not None:
            sessions = [s for s in sessions if s.domain == domain]
        if recoverable:
            sessions = [s for s in sessions if s.is_recoverable]
        return sorted(sessions, key=lambda s: s.last_updated, reverse=True)

    def archive(self, older_than_days: int | None = None) -> list[str]:
        """Move completed sessions older than the cutoff into the archive.

        Returns:
            Ids of the archived sessions
        """
        days = older_than_days
        if days is None:
            days = self.config.sessions.archive_after_days
        cutoff = datetime.now() - timedelta(days=days)
        archived = []
        for doc_id, session in self._store.items():
            if session.status is not SessionStatus.COMPLETED or session.completed_at is None:
                continue
            if session.completed_at < cutoff:
                self._store.move(doc_id, self.config.archive_dir)
                archived.append(doc_id)
                logger.info("Archived: %s (%s)", doc_id, session.title)
        return archived

    def analytics(self, session_id: str) -> SessionAnalytics:
        """Progress and checkpoint cadence for one session."""
        session = self._load(session_id)
        duration_hours = None
        if session.completed_at is not None:
            elapsed = session.completed_at - session.created_at
            duration_hours = round(elapsed.total_seconds() / 3600, 1)

        average_interval = None
        times = [cp.timestamp for cp in session.checkpoints]
        if len(times) > 1:
            gaps = [(b - a).total_seconds() for a, b in zip(times, times[1:], strict=False)]
            average_interval = round(sum(gaps) / len(gaps) / 60, 1)

        return SessionAnalytics(
            session_id=session.session_id,
            title=session.title,
            domain=session.domain,
            status=session.status,
            created_at=session.created_at,
            duration_hours=duration_hours,
            completed_steps=session.completed_steps,
            total_steps=session.total_steps,
            checkpoint_count=len(session.checkpoints),
            average_interval_minutes=average_interval,
            timeline=[(cp.timestamp, cp.description) for cp in session.checkpoints],
        )

    def global_analytics(self) -> GlobalAnalytics:
        """Counts by status and domain across all non-archived sessions."""
        sessions = self._store.load_all()
        completed = [
            s for s in sessions if s.status is SessionStatus.COMPLETED and s.completed_at
        ]
        average_hours = None
        if completed:
            total = sum((s.completed_at - s.created_at).total_seconds() for s in completed)
            average_hours = round(total / len(completed) / 3600, 1)
        return GlobalAnalytics(
            total_sessions=len(sessions),
            by_status=dict(Counter(s.status.value for s in sessions)),
            by_domain=dict(Counter(s.domain for s in sessions)),
            average_completion_hours=average_hours,
        )

    def _load(self, session_id: str) -> Session:
        session = self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session

    def _append_checkpoint(
        self, session: Session, state: CheckpointState, description: str
    ) -> Checkpoint:
        now = datetime.now()
        last = session.last_checkpoint
        if last is not None and now <= last.timestamp:
            # Checkpoint timestamps must stay strictly increasing
            now = last.timestamp + timedelta(microseconds=1)

        current = session.workflow
        workflow_state = WorkflowState(
            workflow_id=current.workflow_id,
            current_step=current.current_step if state.current_step is None else state.current_step,
            steps=current.steps if state.steps is None else state.steps,
            context=current.context if state.context is None else state.context,
            variables=current.variables if state.variables is None else state.variables,
            last_agent=current.last_agent if state.last_agent is None else state.last_agent,
            last_output=current.last_output if state.last_output is None else state.last_output,
        )
        checkpoint = Checkpoint(
            checkpoint_id=f"cp-{int(now.timestamp() * 1000)}-{secrets.token_hex(3)}",
            session_id=session.session_id,
            timestamp=now,
            description=description,
            phase=state.phase or session.current_phase,
            completed_steps=(
                session.completed_steps if state.completed_steps is None else state.completed_steps
            ),
            workflow_state=workflow_state,
            metadata=CheckpointMetadata(
                duration_ms=int((now - session.created_at).total_seconds() * 1000),
                memory_usage=state.memory_usage,
                active_agents=state.active_agents,
            ),
        )

        session.checkpoints.append(checkpoint)
        session.last_updated = now
        session.completed_steps = checkpoint.completed_steps
        session.current_phase = checkpoint.phase
        session.workflow = workflow_state
        return checkpoint

    def _write_recovery_copy(self, checkpoint: Checkpoint) -> None:
        try:
            self._checkpoints.put(checkpoint.checkpoint_id, checkpoint)
        except OSError as e:
            logger.warning("Could not write recovery copy %s: %s", checkpoint.checkpoint_id, e)
