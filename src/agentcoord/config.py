"""Configuration management for agentcoord."""

import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

from .constants import (
    ACQUIRE_TIMEOUT,
    ARCHIVE_DIR,
    CHECKPOINTS_DIR,
    CONFIG_FILE,
    COORDINATION_DIR,
    DEFAULT_ARCHIVE_DAYS,
    DEFAULT_RESOURCE,
    DEFAULT_STATE_DIR,
    DEFAULT_TRACE_LIST_LIMIT,
    GUARD_TIMEOUT,
    HEALTH_DIR,
    LOCKS_DIR,
    POLL_INTERVAL,
    SESSIONS_DIR,
    STALE_TIMEOUT,
    TRACES_DIR,
    WORKFLOW_LOG,
)
from .models import ResourceProfile


class LockConfig(BaseModel):
    """Timing and naming for advisory locks (seconds)."""

    default_resource: str = DEFAULT_RESOURCE
    stale_timeout: float = Field(
        default=STALE_TIMEOUT, gt=0, description="Age after which a lock is presumed abandoned"
    )
    acquire_timeout: float = Field(
        default=ACQUIRE_TIMEOUT, ge=0, description="Overall deadline for acquire()"
    )
    poll_interval: float = Field(default=POLL_INTERVAL, gt=0, description="Delay between polls")
    guard_timeout: float = Field(
        default=GUARD_TIMEOUT,
        gt=0,
        description="Age after which a grant guard is presumed abandoned",
    )


class TraceConfig(BaseModel):
    """Workflow trace settings."""

    list_limit: int = Field(default=DEFAULT_TRACE_LIST_LIMIT, ge=1)


class SessionConfig(BaseModel):
    """Session checkpoint settings."""

    archive_after_days: int = Field(default=DEFAULT_ARCHIVE_DAYS, ge=0)


class ResourcesConfig(BaseModel):
    """Worker profiles added to, or replacing entries of, the built-in table."""

    profiles: dict[str, ResourceProfile] = Field(default_factory=dict)


class CoordConfig(BaseModel):
    """Root configuration for agentcoord."""

    state_dir: Path = Field(default_factory=lambda: Path(DEFAULT_STATE_DIR))
    locks: LockConfig = Field(default_factory=LockConfig)
    traces: TraceConfig = Field(default_factory=TraceConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    resources: ResourcesConfig = Field(default_factory=ResourcesConfig)

    @property
    def lock_dir(self) -> Path:
        return self.state_dir / LOCKS_DIR

    @property
    def trace_dir(self) -> Path:
        return self.state_dir / TRACES_DIR

    @property
    def workflow_log(self) -> Path:
        return self.state_dir / WORKFLOW_LOG

    @property
    def session_dir(self) -> Path:
        return self.state_dir / SESSIONS_DIR

    @property
    def archive_dir(self) -> Path:
        return self.session_dir / ARCHIVE_DIR

    @property
    def checkpoint_dir(self) -> Path:
        return self.state_dir / CHECKPOINTS_DIR

    @property
    def coordination_dir(self) -> Path:
        return self.state_dir / COORDINATION_DIR

    @property
    def health_dir(self) -> Path:
        return self.state_dir / HEALTH_DIR


def resolve_state_dir(state_dir: Path | None = None) -> Path:
    """Return the state directory, defaulting to .agentcoord in the cwd."""
    if state_dir is None:
        return Path.cwd() / DEFAULT_STATE_DIR
    return state_dir


def load_config(state_dir: Path) -> CoordConfig:
    """Load config from <state_dir>/config.toml.

    Args:
        state_dir: Path to the state directory

    Returns:
        Loaded configuration, or defaults if config.toml doesn't exist
    """
    config_path = state_dir / CONFIG_FILE
    if not config_path.exists():
        return CoordConfig(state_dir=state_dir)
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    data["state_dir"] = state_dir
    return CoordConfig.model_validate(data)


def write_config_template(state_dir: Path) -> Path:
    """Write default config.toml template.

    Args:
        state_dir: Path to the state directory

    Returns:
        Path to the written config file
    """
    state_dir.mkdir(parents=True, exist_ok=True)
    config_path = state_dir / CONFIG_FILE
    template = {
        "locks": {
            "default_resource": DEFAULT_RESOURCE,
            "stale_timeout": STALE_TIMEOUT,
            "acquire_timeout": ACQUIRE_TIMEOUT,
            "poll_interval": POLL_INTERVAL,
            "guard_timeout": GUARD_TIMEOUT,
        },
        "traces": {"list_limit": DEFAULT_TRACE_LIST_LIMIT},
        "sessions": {"archive_after_days": DEFAULT_ARCHIVE_DAYS},
        # Extra worker types: access is READ, WRITE, EXTERNAL or COMPUTE
        "resources": {
            "profiles": {
                "report-writer": {
                    "access": "WRITE",
                    "resources": ["reports"],
                    "conflicts": ["report-writer"],
                },
            },
        },
    }
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path


# Active config (set by cli.py main callback)
_config: CoordConfig | None = None


def get_active_config() -> CoordConfig:
    """Get the config for the current invocation.

    Loads from the default state directory if the CLI has not set one.
    """
    if _config is None:
        return load_config(resolve_state_dir())
    return _config


def set_active_config(config: CoordConfig | None) -> None:
    """Set the active config. Called by CLI main callback."""
    global _config
    _config = config
