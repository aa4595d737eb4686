"""Tagged payloads attached to trace steps.

Step data and results used to be arbitrary strings or objects. They are now
one of two shapes, distinguished by ``kind``:

- ``{"kind": "text", "text": "..."}`` for free-form notes
- ``{"kind": "json", "value": ...}`` for structured values
"""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class TextPayload(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class JsonPayload(BaseModel):
    kind: Literal["json"] = "json"
    value: Any = None


Payload = Annotated[TextPayload | JsonPayload, Field(discriminator="kind")]


def to_payload(value: Any) -> TextPayload | JsonPayload | None:
    """Wrap a raw value in the matching payload type.

    Strings stay text; anything else is stored as JSON. ``None`` means no
    payload.
    """
    if value is None:
        return None
    if isinstance(value, TextPayload | JsonPayload):
        return value
    if isinstance(value, str):
        return TextPayload(text=value)
    return JsonPayload(value=value)


def parse_cli_payload(raw: str | None) -> TextPayload | JsonPayload | None:
    """Interpret a command-line argument as a payload.

    JSON objects and arrays become structured payloads; everything else is
    kept as text.
    """
    if raw is None:
        return None
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        return TextPayload(text=raw)
    if isinstance(decoded, dict | list):
        return JsonPayload(value=decoded)
    return TextPayload(text=raw)


def describe_payload(payload: TextPayload | JsonPayload | None) -> str:
    """One-line rendering for timelines."""
    if payload is None:
        return ""
    if isinstance(payload, TextPayload):
        return payload.text
    return json.dumps(payload.value, default=str)
