"""Shared base for persisted documents.

Documents are written with camelCase keys so the files stay readable by the
other tools that tail the state directory, while Python code uses
snake_case attribute names.
"""

import time

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def epoch_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class WireModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        """Serialise with aliases, as written to disk."""
        return self.model_dump_json(by_alias=True, indent=2)
