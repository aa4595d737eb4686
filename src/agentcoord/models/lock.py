"""Lock model for advisory reader/writer locking.

One record is written per held lock; the set of records in a resource's
lock directory is the lock state.
"""

import os
from enum import Enum

from pydantic import Field

from ..constants import DEFAULT_RESOURCE
from .base import WireModel, epoch_ms


class LockMode(str, Enum):
    """Access mode requested by a lock holder."""

    READ = "read"
    WRITE = "write"


class LockRecord(WireModel):
    """Held lock written to locks/<resource>/<lockId>.lock.

    Attributes:
        agent: Owner that requested the lock.
        mode: Read or write access.
        timestamp: Acquisition (or last refresh) time in epoch milliseconds.
        pid: Process ID of the holder.
        lock_id: Unique id, also the file stem.
        resource: Name of the locked resource.
    """

    agent: str = Field(description="Owner that requested the lock")
    mode: LockMode = Field(description="Requested access mode")
    timestamp: int = Field(default_factory=epoch_ms, description="Epoch ms of last stamp")
    pid: int = Field(default_factory=os.getpid, description="Process ID holding the lock")
    lock_id: str = Field(description="Unique lock identifier")
    resource: str = Field(default=DEFAULT_RESOURCE, description="Locked resource name")

    def age_ms(self, now: int | None = None) -> int:
        """Milliseconds since the record was stamped."""
        return (now if now is not None else epoch_ms()) - self.timestamp

    def is_stale(self, timeout_seconds: float, now: int | None = None) -> bool:
        """True if the record is older than the staleness timeout."""
        return self.age_ms(now) > timeout_seconds * 1000
