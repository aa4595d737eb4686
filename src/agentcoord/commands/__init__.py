"""CLI command implementations for agentcoord.

This package contains the implementation of each CLI command group,
separated from the CLI framework setup in cli.py.
"""

from .health import health_app
from .init import init
from .lock import lock_app
from .resources import resources_app
from .session import session_app
from .trace import trace_app

__all__ = [
    "health_app",
    "init",
    "lock_app",
    "resources_app",
    "session_app",
    "trace_app",
]
