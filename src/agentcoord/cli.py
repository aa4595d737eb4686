"""agentcoord CLI: file-backed coordination for multi-agent workflows."""

import sys
from pathlib import Path

import click
import typer

from agentcoord import __version__

from .commands import (
    health_app,
    init,
    lock_app,
    resources_app,
    session_app,
    trace_app,
)
from .config import load_config, resolve_state_dir, set_active_config
from .logging import configure_logging
from .output import OutputContext, set_output_context


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"agentcoord {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="agentcoord",
    help="Locks, conflict planning, tracing and checkpoints for cooperating agents",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    state_dir: Path | None = typer.Option(
        None,
        "--state-dir",
        envvar="AGENTCOORD_STATE_DIR",
        file_okay=False,
        help="Coordination state directory (default: ./.agentcoord)",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v, -vv)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only show warnings and errors in the log",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format for automation",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """agentcoord - coordination primitives for multi-agent workflows."""
    console = configure_logging(
        verbosity=verbose,
        quiet=quiet,
        no_color=no_color,
    )
    set_output_context(OutputContext(console=console, json_mode=json_output))
    set_active_config(load_config(resolve_state_dir(state_dir)))


app.command()(init)
app.add_typer(lock_app, name="lock")
app.add_typer(resources_app, name="resources")
app.add_typer(trace_app, name="trace")
app.add_typer(session_app, name="session")
app.add_typer(health_app, name="health")


def run() -> None:
    """Console entry point. Usage errors exit with status 1."""
    try:
        code = app(standalone_mode=False)
    except click.UsageError as e:
        e.show()
        sys.exit(1)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    sys.exit(code or 0)


if __name__ == "__main__":
    run()
