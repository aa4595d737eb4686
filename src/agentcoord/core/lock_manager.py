"""Advisory reader/writer locks for shared resources.

Each held lock is one JSON record in ``locks/<resource>/``. Any number of
readers may hold a resource together; a writer needs it to itself. Records
older than the staleness timeout are treated as left behind by a crashed
holder and removed on the next poll of any waiter.

Granting runs under a guard file created with O_CREAT | O_EXCL, so
"check the existing records, then write ours" is one step across processes.

Locks are advisory: only callers that go through LockManager honour them.
"""

import contextlib
import logging
import os
import re
import secrets
import time
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType

from ..config import CoordConfig
from ..errors import LockError, LockTimeoutError
from ..models import LockMode, LockRecord, epoch_ms
from .store import DocumentStore

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
GUARD_FILE = ".guard"


def _new_lock_id(owner: str) -> str:
    """Generate a unique lock id prefixed with a filesystem-safe owner name."""
    safe_owner = re.sub(r"[^A-Za-z0-9_.-]+", "-", owner).strip("-.") or "agent"
    return f"{safe_owner}-{epoch_ms()}-{secrets.token_hex(4)}"


def is_compatible(mode: LockMode, held: list[LockRecord]) -> bool:
    """Check whether a lock of ``mode`` may be granted alongside ``held``.

    Write locks need the resource to be free; read locks only need no writer.
    """
    if mode is LockMode.WRITE:
        return not held
    return all(record.mode is not LockMode.WRITE for record in held)


class LockHandle:
    """A granted lock. Release it exactly once, or use it as a context manager."""

    def __init__(self, manager: "LockManager", record: LockRecord) -> None:
        self._manager = manager
        self.record = record
        self._released = False

    @property
    def lock_id(self) -> str:
        return self.record.lock_id

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Delete this lock's record.

        Returns:
            True if the record was removed, False if already released or reaped
        """
        if self._released:
            return False
        self._released = True
        removed = self._manager._store.delete(self.lock_id)
        if removed:
            logger.info("[%s] %s lock released", self.record.agent, self._manager.resource)
        else:
            logger.warning("[%s] lock %s was already gone", self.record.agent, self.lock_id)
        return removed

    def refresh(self) -> None:
        """Re-stamp the record so a long-running holder is not reaped.

        Raises:
            LockError: If the lock was released or its record was reaped
        """
        if self._released:
            raise LockError(f"Lock {self.lock_id} has been released")
        if not self._manager._store.exists(self.lock_id):
            raise LockError(f"Lock {self.lock_id} is no longer held (reaped as stale?)")
        self.record.timestamp = epoch_ms()
        self._manager._store.put(self.lock_id, self.record)

    def __enter__(self) -> "LockHandle":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class LockManager:
    """Reader/writer locks on one named resource.

    Args:
        config: Coordination config (lock directory and timings)
        resource: Resource name, defaults to ``config.locks.default_resource``
    """

    def __init__(self, config: CoordConfig, resource: str | None = None) -> None:
        self.config = config
        self.resource = resource or config.locks.default_resource
        self.directory = config.lock_dir / self.resource
        self._store = DocumentStore(self.directory, LockRecord, suffix=LOCK_SUFFIX)

    @property
    def guard_path(self) -> Path:
        return self.directory / GUARD_FILE

    def acquire(
        self,
        owner: str,
        mode: LockMode = LockMode.READ,
        timeout: float | None = None,
    ) -> LockHandle:
        """Block until a lock of ``mode`` is granted to ``owner``.

        Polls every ``poll_interval`` seconds, reaping stale records on each
        poll. There is no retry past the deadline; the caller decides.

        Args:
            owner: Agent requesting the lock
            mode: Read or write access
            timeout: Overall deadline in seconds, defaults to ``acquire_timeout``

        Returns:
            Handle whose release() deletes exactly this lock's record

        Raises:
            LockTimeoutError: If the lock was not granted before the deadline
            LockError: If the lock record cannot be written
        """
        settings = self.config.locks
        wait = settings.acquire_timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        record = LockRecord(
            agent=owner,
            mode=mode,
            lock_id=_new_lock_id(owner),
            resource=self.resource,
        )

        while True:
            self.reap_stale()
            if self._try_grant(record):
                logger.info("[%s] %s lock acquired (%s)", owner, self.resource, mode.value.upper())
                return LockHandle(self, record)
            if time.monotonic() >= deadline:
                raise LockTimeoutError(
                    f"Timeout waiting for {mode.value} access to {self.resource!r} "
                    f"after {wait:g}s"
                )
            time.sleep(settings.poll_interval)

    def status(self) -> list[LockRecord]:
        """Currently held locks, oldest first. Malformed records are skipped."""
        return sorted(self._store.load_all(), key=lambda r: r.timestamp)

    def reap_stale(self) -> int:
        """Delete records older than the staleness timeout.

        Malformed records are removed once their file is that old.

        Returns:
            Number of records removed
        """
        timeout = self.config.locks.stale_timeout
        now = epoch_ms()
        removed = 0
        for lock_id in self._store.ids():
            record = self._store.get(lock_id)
            if record is None:
                if self._file_age(self._store.path(lock_id)) > timeout and self._store.delete(
                    lock_id
                ):
                    logger.warning("Removed unreadable lock file %s", lock_id)
                    removed += 1
                continue
            if record.is_stale(timeout, now) and self._store.delete(lock_id):
                logger.info(
                    "Cleaned stale lock: %s (%s, %ds old)",
                    record.agent,
                    record.mode.value,
                    record.age_ms(now) // 1000,
                )
                removed += 1
        return removed

    def cleanup(self) -> int:
        """Force-remove every lock on this resource (emergency use).

        Returns:
            Number of records removed
        """
        removed = sum(1 for lock_id in self._store.ids() if self._store.delete(lock_id))
        with contextlib.suppress(FileNotFoundError):
            self.guard_path.unlink()
        logger.info("Force cleanup of %s: removed %d lock(s)", self.resource, removed)
        return removed

    def _try_grant(self, record: LockRecord) -> bool:
        with self._grant_guard() as held:
            if not held:
                return False
            if not is_compatible(record.mode, self.status()):
                return False
            record.timestamp = epoch_ms()
            try:
                created = self._store.create(record.lock_id, record)
            except OSError as e:
                raise LockError(f"Failed to write lock file: {e}") from e
            if not created:
                raise LockError(f"Lock id already in use: {record.lock_id}")
            return True

    @contextlib.contextmanager
    def _grant_guard(self) -> Iterator[bool]:
        """Hold the resource's guard file for the duration of the block.

        Yields False without blocking if another process holds it.
        """
        guard = self.guard_path
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(guard), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            self._clear_stale_guard(guard)
            yield False
            return
        except OSError as e:
            raise LockError(f"Cannot create lock guard {guard}: {e}") from e

        try:
            os.write(fd, str(os.getpid()).encode())
        finally:
            os.close(fd)
        try:
            yield True
        finally:
            with contextlib.suppress(FileNotFoundError):
                guard.unlink()

    def _clear_stale_guard(self, guard: Path) -> None:
        try:
            seen = guard.stat()
        except FileNotFoundError:
            return
        if time.time() - seen.st_mtime > self.config.locks.guard_timeout:
            self._retire_guard(guard, seen)

    def _retire_guard(self, guard: Path, seen: os.stat_result) -> bool:
        """Remove the guard only if it is still the file described by ``seen``.

        The guard is first renamed to a unique tombstone, so a guard created
        after ``seen`` was taken is never unlinked. If the rename caught such
        a fresh guard it is linked back into place.

        Returns:
            True if the abandoned guard was removed
        """
        tombstone = guard.with_name(f"{GUARD_FILE}.{os.getpid()}.{secrets.token_hex(4)}")
        try:
            os.rename(guard, tombstone)
        except FileNotFoundError:
            return False
        try:
            moved = tombstone.stat()
            if (moved.st_ino, moved.st_mtime_ns) != (seen.st_ino, seen.st_mtime_ns):
                with contextlib.suppress(FileExistsError):
                    os.link(tombstone, guard)
                return False
        finally:
            tombstone.unlink()
        logger.warning("Removed abandoned lock guard for %s", self.resource)
        return True

    @staticmethod
    def _file_age(path: Path) -> float:
        """Seconds since the file was last modified, 0 if it is gone."""
        try:
            return time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return 0.0
