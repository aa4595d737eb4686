"""Health commands."""

import time

import typer
from rich.markup import escape

from ..config import get_active_config
from ..core import HealthMonitor
from ..models import HealthReport, HealthStatus
from ..output import get_output_context

health_app = typer.Typer(help="Health of the coordination state")

_STYLE = {
    HealthStatus.HEALTHY: "green",
    HealthStatus.WARNING: "yellow",
    HealthStatus.ERROR: "red",
}


def _show(report: HealthReport) -> None:
    ctx = get_output_context()
    if ctx.json_mode:
        ctx.print_json(report)
        return
    style = _STYLE[report.overall]
    ctx.print(f"\n[bold]System health:[/bold] [{style}]{report.overall.value.upper()}[/{style}]")
    for name, component in report.components.items():
        metrics = ", ".join(f"{key}={value}" for key, value in component.metrics.items())
        ctx.print(f"  {name}: {component.status.value} ({escape(metrics)})")
    for issue in report.issues:
        ctx.print(f"  [yellow]![/yellow] {escape(issue)}")


@health_app.command("check")
def health_check(
    save: bool = typer.Option(True, "--save/--no-save", help="Write health/system-health.json"),
) -> None:
    """Run a health check; exits 1 when the overall status is error."""
    report = HealthMonitor(get_active_config()).check(save=save)
    _show(report)
    if report.overall is HealthStatus.ERROR:
        raise typer.Exit(1)


@health_app.command("watch")
def health_watch(
    interval: float = typer.Option(
        30.0, "--interval", "-i", min=0.1, help="Seconds between checks"
    ),
    count: int | None = typer.Option(
        None, "--count", "-n", min=1, help="Stop after this many checks"
    ),
) -> None:
    """Repeat the health check until interrupted."""
    monitor = HealthMonitor(get_active_config())
    runs = 0
    try:
        while True:
            _show(monitor.check())
            runs += 1
            if count is not None and runs >= count:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        get_output_context().print("Stopped")
