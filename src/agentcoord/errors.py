"""Errors raised by agentcoord components."""


class CoordinationError(Exception):
    """Base exception for coordination errors."""


class LockError(CoordinationError):
    """Error acquiring or managing a lock."""


class LockTimeoutError(LockError):
    """Raised when a lock is not obtained before the deadline."""


class NotFoundError(CoordinationError):
    """Raised when an identifier does not refer to a stored document."""


class WorkflowNotFoundError(NotFoundError):
    """Raised when a workflow trace does not exist."""


class StepNotFoundError(NotFoundError):
    """Raised when a workflow has no step with the given id."""


class SessionNotFoundError(NotFoundError):
    """Raised when a session does not exist."""


class InvalidTransitionError(CoordinationError):
    """Raised when an operation is not allowed in the record's current state."""
