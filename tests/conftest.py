"""Shared test fixtures for agentcoord tests."""

from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from agentcoord.config import CoordConfig, LockConfig, set_active_config
from agentcoord.output import set_output_context


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Path of a fresh, not yet created, state directory."""
    return tmp_path / ".agentcoord"


@pytest.fixture
def config(state_dir: Path) -> CoordConfig:
    """Config rooted at a temp state dir, with fast lock polling."""
    return CoordConfig(
        state_dir=state_dir,
        locks=LockConfig(poll_interval=0.01, acquire_timeout=0.5),
    )


@pytest.fixture(autouse=True)
def reset_cli_state() -> Generator[None, None, None]:
    """Clear the module-level config and output context after each test."""
    yield
    set_active_config(None)
    set_output_context(None)
