"""Init command implementation."""

from rich.markup import escape

from ..config import get_active_config, write_config_template
from ..constants import CONFIG_FILE
from ..output import get_output_context


def init() -> None:
    """Create the state directory and a config template."""
    ctx = get_output_context()
    config = get_active_config()
    state_dir = config.state_dir

    for directory in (
        config.lock_dir,
        config.trace_dir,
        config.session_dir,
        config.checkpoint_dir,
        config.coordination_dir,
        config.health_dir,
    ):
        directory.mkdir(parents=True, exist_ok=True)

    config_path = state_dir / CONFIG_FILE
    created = not config_path.exists()
    if created:
        write_config_template(state_dir)
        ctx.print(f"[green]Created config template:[/green] {escape(str(config_path))}")
    else:
        ctx.print(f"[yellow]Config already exists:[/yellow] {escape(str(config_path))}")

    ctx.success(
        f"Initialized coordination state in {state_dir}",
        {"stateDir": str(state_dir), "configCreated": created},
    )
