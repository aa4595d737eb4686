"""File-per-record document store.

Each document is one JSON file named ``<id><suffix>`` in a directory. The
directory is created on demand. Two write primitives are offered:

- ``put`` replaces the file atomically (temp file + ``os.replace``), so a
  reader never sees a half-written document.
- ``create`` uses ``O_CREAT | O_EXCL`` and fails if the id already exists,
  which is the only cross-process test-and-set the store provides.

Unreadable or invalid documents are treated as absent.
"""

import contextlib
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import ValidationError

from ..models import WireModel

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=WireModel)


class DocumentStore(Generic[M]):
    """Repository of ``M`` documents keyed by id."""

    def __init__(self, directory: Path, model: type[M], suffix: str = ".json") -> None:
        self.directory = directory
        self.model = model
        self.suffix = suffix

    def path(self, doc_id: str) -> Path:
        if not doc_id or doc_id.startswith(".") or "/" in doc_id or "\\" in doc_id:
            raise ValueError(f"Invalid document id: {doc_id!r}")
        return self.directory / f"{doc_id}{self.suffix}"

    def ensure_dir(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def exists(self, doc_id: str) -> bool:
        return self.path(doc_id).exists()

    def get(self, doc_id: str) -> M | None:
        """Load a document, or None if missing or malformed."""
        return self._read(self.path(doc_id))

    def put(self, doc_id: str, doc: M) -> Path:
        """Write a document, replacing any existing one atomically."""
        self.ensure_dir()
        target = self.path(doc_id)
        tmp_path = target.with_name(f".{target.name}.tmp.{os.getpid()}")
        try:
            tmp_path.write_text(doc.to_json())
            os.replace(tmp_path, target)
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp_path.unlink()
        return target

    def create(self, doc_id: str, doc: M) -> bool:
        """Write a document only if the id is unused.

        Returns:
            True if the document was created, False if the file already exists
        """
        self.ensure_dir()
        try:
            fd = os.open(str(self.path(doc_id)), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        try:
            os.write(fd, doc.to_json().encode())
        finally:
            os.close(fd)
        return True

    def delete(self, doc_id: str) -> bool:
        """Remove a document. Returns False if it was already gone."""
        try:
            self.path(doc_id).unlink()
        except FileNotFoundError:
            return False
        return True

    def move(self, doc_id: str, destination: Path) -> Path:
        """Move a document file unchanged into another directory."""
        destination.mkdir(parents=True, exist_ok=True)
        target = destination / self.path(doc_id).name
        os.replace(self.path(doc_id), target)
        return target

    def ids(self) -> list[str]:
        """Ids of all document files, sorted."""
        return sorted(p.name[: -len(self.suffix)] for p in self._files())

    def items(self) -> Iterator[tuple[str, M]]:
        """Yield (id, document) pairs, skipping malformed files."""
        for doc_id in self.ids():
            doc = self.get(doc_id)
            if doc is not None:
                yield doc_id, doc

    def load_all(self) -> list[M]:
        return [doc for _, doc in self.items()]

    def _files(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return [
            p
            for p in self.directory.iterdir()
            if p.is_file() and p.name.endswith(self.suffix) and not p.name.startswith(".")
        ]

    def _read(self, path: Path) -> M | None:
        try:
            content = path.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Unreadable document %s: %s", path, e)
            return None
        try:
            return self.model.model_validate_json(content)
        except ValidationError:
            logger.warning("Ignoring malformed document %s", path)
            return None
