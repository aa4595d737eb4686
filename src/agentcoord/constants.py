"""Constants for agentcoord."""

# State directory layout
DEFAULT_STATE_DIR = ".agentcoord"
CONFIG_FILE = "config.toml"
LOCKS_DIR = "locks"
TRACES_DIR = "traces"
WORKFLOW_LOG = "workflow.log"
SESSIONS_DIR = "sessions"
ARCHIVE_DIR = "archive"
CHECKPOINTS_DIR = "checkpoints"
COORDINATION_DIR = "coordination"
REGISTRY_ID = "active_work_registry"
HEALTH_DIR = "health"
HEALTH_ID = "system-health"

# Lock timing (seconds)
STALE_TIMEOUT = 30.0
ACQUIRE_TIMEOUT = 30.0
POLL_INTERVAL = 0.1  # 100ms
GUARD_TIMEOUT = 5.0

DEFAULT_RESOURCE = "corpus"
DEFAULT_TRACE_LIST_LIMIT = 10
DEFAULT_ARCHIVE_DAYS = 30
HEALTH_RECENT_WORKFLOWS = 10

# Document format version written into trace and registry metadata
FORMAT_VERSION = "1.0.0"
