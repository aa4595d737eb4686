"""Lock commands: acquire, status and cleanup."""

import time

import typer
from rich.markup import escape

from ..config import get_active_config
from ..core import LockHandle, LockManager
from ..errors import LockError
from ..models import LockMode, epoch_ms
from ..output import get_output_context

lock_app = typer.Typer(help="Advisory reader/writer locks on shared resources")


def _hold(handle: LockHandle, seconds: float | None, interval: float) -> None:
    """Keep a lock for ``seconds`` (forever if None), refreshing it every ``interval``.

    Raises:
        LockError: If the record disappeared while held
    """
    deadline = None if seconds is None else time.monotonic() + seconds
    while True:
        if deadline is None:
            time.sleep(interval)
        else:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(min(interval, remaining))
        handle.refresh()


@lock_app.command("acquire")
def lock_acquire(
    agent: str = typer.Argument(..., help="Agent requesting the lock"),
    mode: LockMode = typer.Argument(LockMode.READ, help="Access mode"),
    resource: str | None = typer.Option(
        None, "--resource", "-r", help="Resource to lock (defaults to the configured one)"
    ),
    hold: float | None = typer.Option(
        None,
        "--hold",
        help="Release after this many seconds (default: hold until Ctrl+C)",
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for the lock"
    ),
) -> None:
    """Acquire a lock, hold it, then release it."""
    ctx = get_output_context()
    manager = LockManager(get_active_config(), resource)

    try:
        handle = manager.acquire(agent, mode, timeout=timeout)
    except LockError as e:
        ctx.error(str(e), {"resource": manager.resource, "agent": agent})
        raise typer.Exit(1) from None

    with handle:
        ctx.success(
            f"{mode.value.upper()} lock acquired on {manager.resource} by {agent}",
            {"lockId": handle.lock_id, "resource": manager.resource, "mode": mode.value},
        )
        if hold is None:
            ctx.print("Lock held. Press Ctrl+C to release.")
        # Heartbeat at a third of the staleness window
        interval = manager.config.locks.stale_timeout / 3
        try:
            _hold(handle, hold, interval)
        except KeyboardInterrupt:
            pass
        except LockError as e:
            ctx.error(str(e), {"resource": manager.resource, "agent": agent})
            raise typer.Exit(1) from None
    ctx.print(f"Lock released: {escape(handle.lock_id)}")


@lock_app.command("status")
def lock_status(
    resource: str | None = typer.Option(
        None, "--resource", "-r", help="Resource to inspect (defaults to the configured one)"
    ),
) -> None:
    """Show locks currently held on a resource."""
    ctx = get_output_context()
    manager = LockManager(get_active_config(), resource)
    records = manager.status()

    if ctx.json_mode:
        ctx.print_json({"resource": manager.resource, "locks": records})
        return

    ctx.print(f"\n[bold]Lock status: {escape(manager.resource)}[/bold]")
    if not records:
        ctx.print("[green]FREE[/green] - no active locks")
        return
    now = epoch_ms()
    ctx.print(f"{len(records)} active lock(s):")
    for record in records:
        ctx.print(
            f"  - {escape(record.agent)} ({record.mode.value.upper()}) "
            f"- {record.age_ms(now) // 1000}s ago (pid {record.pid})"
        )


@lock_app.command("cleanup")
def lock_cleanup(
    resource: str | None = typer.Option(
        None, "--resource", "-r", help="Resource to clear (defaults to the configured one)"
    ),
) -> None:
    """Force-remove every lock on a resource (emergency use)."""
    ctx = get_output_context()
    manager = LockManager(get_active_config(), resource)
    removed = manager.cleanup()
    ctx.success(
        f"Force cleanup: removed {removed} lock(s) from {manager.resource}",
        {"resource": manager.resource, "removed": removed},
    )
