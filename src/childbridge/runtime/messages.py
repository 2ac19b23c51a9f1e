from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ValidationError


class MessageKind(str, Enum):
    """Closed set of envelope ids exchanged with the parent process."""

    READY = "ready"
    LOAD = "load"
    LOADED = "loaded"
    START = "start"
    ERROR = "error"


OUTBOUND_KINDS = frozenset({MessageKind.READY, MessageKind.LOADED, MessageKind.ERROR})
INBOUND_KINDS = frozenset({MessageKind.LOAD, MessageKind.START})


class Envelope(BaseModel):
    """One typed message between parent and child."""

    id: MessageKind
    data: Optional[Any] = None

    def to_line(self) -> str:
        """Serialize as a single JSON line; ``data`` is omitted when empty."""
        return self.model_dump_json(exclude_none=True) + "\n"


def parse_envelope(raw: Any) -> Envelope | None:
    """Parse a raw inbound message into an Envelope.

    Accepts a dict or a JSON string/bytes line. Returns None for anything
    that is not an object with a known ``id``.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped:
            return None
        try:
            raw = json.loads(stripped)
        except json.JSONDecodeError:
            return None

    if not isinstance(raw, dict) or not raw.get("id"):
        return None

    try:
        return Envelope.model_validate(raw)
    except ValidationError:
        return None
