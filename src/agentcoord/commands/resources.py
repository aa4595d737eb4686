"""Resource planning and work registry commands."""

import typer
from rich.markup import escape

from ..config import get_active_config
from ..core import ResourcePlanner, WorkRegistry
from ..models import epoch_ms
from ..output import get_output_context

resources_app = typer.Typer(help="Resource conflict checks and the active-work registry")


def _planner() -> ResourcePlanner:
    return ResourcePlanner(get_active_config().resources.profiles)


@resources_app.command("check")
def resources_check(
    agents: list[str] = typer.Argument(..., help="Worker types to run together"),
) -> None:
    """Check whether a batch of workers may run in parallel."""
    ctx = get_output_context()
    check = _planner().check_parallel(agents)

    if ctx.json_mode:
        ctx.print_json(check)
        return

    ctx.print(f"Checking parallel execution for: {escape(', '.join(agents))}")
    if check.safe:
        ctx.print("[green]All agents can run in parallel safely[/green]")
        return
    ctx.print(f"[yellow]Found {len(check.conflicts)} conflict(s):[/yellow]")
    for conflict in check.conflicts:
        ctx.print(f"  - {escape(conflict.first)} <-> {escape(conflict.second)}: {conflict.reason}")
    ctx.print("\n[bold]Suggested phases:[/bold]")
    for index, phase in enumerate(check.phases, start=1):
        ctx.print(f"  Phase {index}: {escape(', '.join(phase))}")


@resources_app.command("suggest")
def resources_suggest(
    agents: list[str] = typer.Argument(..., help="Worker types to schedule"),
) -> None:
    """Recommend an execution strategy for a batch of workers."""
    ctx = get_output_context()
    recommendation = _planner().recommend(agents)

    if ctx.json_mode:
        ctx.print_json(recommendation)
        return

    ctx.print("\n[bold]Execution strategy[/bold]")
    if recommendation.safe:
        ctx.print("[green]PARALLEL EXECUTION SAFE[/green]")
        ctx.print(f"All {len(agents)} agents can run simultaneously")
    else:
        ctx.print("[yellow]SEQUENTIAL EXECUTION REQUIRED[/yellow]")
        ctx.print(f"Split into {len(recommendation.phases)} phases:")
        for index, phase in enumerate(recommendation.phases, start=1):
            suffix = " (parallel)" if len(phase) > 1 else ""
            ctx.print(f"  Phase {index}: {escape(', '.join(phase))}{suffix}")
    ctx.print(f"Estimated speedup: {recommendation.speedup:g}x")
    ctx.print(f"Parallelization efficiency: {recommendation.efficiency}%")


@resources_app.command("register")
def resources_register(
    agent: str = typer.Argument(..., help="Agent starting work"),
    description: list[str] | None = typer.Argument(None, help="What the agent is doing"),
) -> None:
    """Register work in progress for an agent."""
    ctx = get_output_context()
    entry = WorkRegistry(get_active_config()).register(agent, " ".join(description or []))
    ctx.success(f"Registered work for {agent}", {"work": entry})


@resources_app.command("unregister")
def resources_unregister(
    agent: str = typer.Argument(..., help="Agent finishing work"),
) -> None:
    """Move an agent's work to the completed list."""
    ctx = get_output_context()
    completed = WorkRegistry(get_active_config()).unregister(agent)
    if completed is None:
        ctx.warning(f"No active work registered for {agent}")
        ctx.print_json({"agent": agent, "unregistered": False})
        return
    ctx.success(
        f"Unregistered work for {agent} ({completed.duration}ms)",
        {"work": completed},
    )


@resources_app.command("status")
def resources_status() -> None:
    """Show registered and recently completed work."""
    ctx = get_output_context()
    registry = WorkRegistry(get_active_config()).load()

    if ctx.json_mode:
        ctx.print_json(registry)
        return

    now = epoch_ms()
    ctx.print("\n[bold]Resource coordination status[/bold]")
    if not registry.active_work:
        ctx.print("[green]No active work registered[/green]")
    else:
        ctx.print(f"{len(registry.active_work)} active work item(s):")
        for entry in registry.active_work.values():
            seconds = (now - entry.start_time) // 1000
            description = escape(entry.description or "Working...")
            ctx.print(f"  - {escape(entry.agent)}: {description} ({seconds}s)")

    recent = registry.completed_work[-5:]
    if recent:
        ctx.print("\nRecent completed work:")
        for work in recent:
            ctx.print(f"  - {escape(work.agent)}: {work.duration / 1000:.1f}s")
