"""Registry of work currently in progress, shared by all agents.

A single JSON document under ``coordination/``. Registering replaces the
agent's entry; unregistering moves it to the completed list with its
duration. A missing or malformed registry reads as empty.
"""

import logging
import os
from pathlib import Path

from ..config import CoordConfig
from ..constants import FORMAT_VERSION, REGISTRY_ID
from ..models import (
    CompletedWork,
    RegistryMetadata,
    WorkEntry,
    WorkRegistryDocument,
    epoch_ms,
)
from .store import DocumentStore

logger = logging.getLogger(__name__)


def empty_registry() -> WorkRegistryDocument:
    return WorkRegistryDocument(
        metadata=RegistryMetadata(created=epoch_ms(), version=FORMAT_VERSION),
    )


class WorkRegistry:
    """Active-work registry stored at coordination/active_work_registry.json."""

    def __init__(self, config: CoordConfig) -> None:
        self._store = DocumentStore(config.coordination_dir, WorkRegistryDocument)

    @property
    def path(self) -> Path:
        return self._store.path(REGISTRY_ID)

    def load(self) -> WorkRegistryDocument:
        return self._store.get(REGISTRY_ID) or empty_registry()

    def register(self, agent: str, description: str = "") -> WorkEntry:
        """Record that ``agent`` has started work."""
        registry = self.load()
        entry = WorkEntry(
            agent=agent,
            description=description,
            start_time=epoch_ms(),
            pid=os.getpid(),
        )
        registry.active_work[agent] = entry
        self._store.put(REGISTRY_ID, registry)
        logger.info("Registered work for %s", agent)
        return entry

    def unregister(self, agent: str) -> CompletedWork | None:
        """Move ``agent``'s work to the completed list.

        Returns:
            The completed entry, or None if the agent had no active work
        """
        registry = self.load()
        entry = registry.active_work.pop(agent, None)
        if entry is None:
            logger.debug("No active work registered for %s", agent)
            return None
        end_time = epoch_ms()
        completed = CompletedWork(
            **entry.model_dump(),
            end_time=end_time,
            duration=end_time - entry.start_time,
        )
        registry.completed_work.append(completed)
        self._store.put(REGISTRY_ID, registry)
        logger.info("Unregistered work for %s (%dms)", agent, completed.duration)
        return completed
