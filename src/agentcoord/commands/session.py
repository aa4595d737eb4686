"""Session checkpoint commands."""

from pathlib import Path
from typing import TypeVar

import typer
from pydantic import ValidationError
from rich.markup import escape

from ..config import get_active_config
from ..core import SessionStore
from ..errors import CoordinationError
from ..models import CheckpointState, InitialState, SessionStatus, WireModel
from ..output import get_output_context

session_app = typer.Typer(help="Resumable sessions with checkpoints")

S = TypeVar("S", bound=WireModel)


def _store() -> SessionStore:
    return SessionStore(get_active_config())


def _read_state(path: Path | None, model: type[S]) -> S | None:
    """Load a state file, exiting with an error if it is invalid."""
    if path is None:
        return None
    try:
        return model.model_validate_json(path.read_text())
    except (OSError, ValidationError) as e:
        get_output_context().error(f"Invalid state file {path}: {e}")
        raise typer.Exit(1) from None


@session_app.command("create")
def session_create(
    title: str = typer.Argument(..., help="Session title"),
    domain: str = typer.Argument(..., help="Domain tag"),
    initial_state: Path | None = typer.Argument(
        None, exists=True, dir_okay=False, help="JSON file with the initial state"
    ),
) -> None:
    """Create a new session."""
    ctx = get_output_context()
    session = _store().create(title, domain, _read_state(initial_state, InitialState))
    if ctx.json_mode:
        ctx.print_json(session)
        return
    ctx.print(f"[green]Session created:[/green] {escape(session.session_id)}")
    ctx.print(f"Title: {escape(session.title)}")
    ctx.print(f"Domain: {escape(session.domain)}")
    ctx.print(f"Estimated steps: {session.total_steps}")


@session_app.command("save")
def session_save(
    session_id: str = typer.Argument(..., help="Session id"),
    state: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON state file"),
    description: str = typer.Argument(..., help="Checkpoint description"),
) -> None:
    """Save a checkpoint."""
    ctx = get_output_context()
    try:
        checkpoint = _store().save_checkpoint(
            session_id, _read_state(state, CheckpointState), description
        )
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    ctx.success(
        f"Checkpoint saved: {checkpoint.checkpoint_id} ({description})",
        {"checkpoint": checkpoint},
    )


@session_app.command("resume")
def session_resume(
    session_id: str = typer.Argument(..., help="Session id"),
) -> None:
    """Resume a session from its last checkpoint."""
    ctx = get_output_context()
    try:
        session = _store().resume(session_id)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    next_step = session.next_action()
    if ctx.json_mode:
        ctx.print_json({"session": session, "nextAction": next_step})
        return

    ctx.print(f"\n[bold]Resuming session: {escape(session.title)}[/bold]")
    ctx.print(f"Status: {session.status.value}")
    ctx.print(f"Phase: {escape(session.current_phase)}")
    ctx.print(f"Progress: {session.completed_steps}/{session.total_steps} steps")
    checkpoint = session.last_checkpoint
    if checkpoint is None:
        ctx.print("No checkpoints yet; starting from the beginning")
        return
    ctx.print(
        f"Last checkpoint: {escape(checkpoint.description)} "
        f"({checkpoint.timestamp:%Y-%m-%d %H:%M})"
    )
    if session.workflow.last_agent:
        ctx.print(f"Last agent: {escape(session.workflow.last_agent)}")
    if next_step is not None:
        ctx.print(f"Next action: {escape(next_step.agent)} - {escape(next_step.description)}")


@session_app.command("pause")
def session_pause(
    session_id: str = typer.Argument(..., help="Session id"),
) -> None:
    """Pause an active session."""
    ctx = get_output_context()
    try:
        session = _store().pause(session_id)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    ctx.success(f"Session paused: {session_id}", {"session": session})


@session_app.command("list")
def session_list(
    status: SessionStatus | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    domain: str | None = typer.Option(None, "--domain", "-d", help="Filter by domain"),
    recoverable: bool = typer.Option(
        False, "--recoverable", help="Only active sessions with a checkpoint"
    ),
) -> None:
    """List sessions, most recently updated first."""
    ctx = get_output_context()
    sessions = _store().list_sessions(status=status, domain=domain, recoverable=recoverable)

    if ctx.json_mode:
        ctx.print_json(sessions)
        return

    if not sessions:
        ctx.print("No sessions found")
        return
    ctx.print(f"\n[bold]Sessions ({len(sessions)})[/bold]")
    for session in sessions:
        marker = " (recoverable)" if session.is_recoverable else ""
        ctx.print(
            f"  - {escape(session.session_id)}: {escape(session.title)} "
            f"- {session.status.value}, {escape(session.current_phase)}, "
            f"{session.completed_steps}/{session.total_steps} steps{marker}"
        )


@session_app.command("complete")
def session_complete(
    session_id: str = typer.Argument(..., help="Session id"),
    final_state: Path | None = typer.Argument(
        None, exists=True, dir_okay=False, help="JSON file with the final state"
    ),
) -> None:
    """Write a final checkpoint and mark the session completed."""
    ctx = get_output_context()
    try:
        session = _store().complete(session_id, _read_state(final_state, CheckpointState))
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    ctx.success(
        f"Session completed: {session.title} ({len(session.checkpoints)} checkpoints)",
        {"session": session},
    )


@session_app.command("archive")
def session_archive(
    days: int | None = typer.Argument(
        None, min=0, help="Archive completed sessions older than this many days"
    ),
) -> None:
    """Move old completed sessions to the archive."""
    ctx = get_output_context()
    archived = _store().archive(days)
    ctx.success(f"Archived {len(archived)} session(s)", {"archived": archived})


@session_app.command("analytics")
def session_analytics(
    session_id: str | None = typer.Argument(None, help="Session id (omit for all sessions)"),
) -> None:
    """Show progress analytics for one session or all of them."""
    ctx = get_output_context()
    store = _store()

    if session_id is None:
        totals = store.global_analytics()
        if ctx.json_mode:
            ctx.print_json(totals)
            return
        ctx.print("\n[bold]Session analytics[/bold]")
        ctx.print(f"Total sessions: {totals.total_sessions}")
        for status, count in sorted(totals.by_status.items()):
            ctx.print(f"  {status}: {count}")
        for domain, count in sorted(totals.by_domain.items()):
            ctx.print(f"  domain {escape(domain)}: {count}")
        if totals.average_completion_hours is not None:
            ctx.print(f"Average completion: {totals.average_completion_hours}h")
        return

    try:
        analytics = store.analytics(session_id)
    except CoordinationError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    if ctx.json_mode:
        ctx.print_json(analytics)
        return
    ctx.print(f"\n[bold]Session analytics: {escape(analytics.title)}[/bold]")
    ctx.print(f"Status: {analytics.status.value}")
    ctx.print(f"Progress: {analytics.completed_steps}/{analytics.total_steps} steps")
    ctx.print(f"Checkpoints: {analytics.checkpoint_count}")
    if analytics.duration_hours is not None:
        ctx.print(f"Duration: {analytics.duration_hours}h")
    if analytics.average_interval_minutes is not None:
        ctx.print(f"Average checkpoint interval: {analytics.average_interval_minutes}min")
    for timestamp, description in analytics.timeline:
        ctx.print(f"  {timestamp:%Y-%m-%d %H:%M:%S}  {escape(description)}")
