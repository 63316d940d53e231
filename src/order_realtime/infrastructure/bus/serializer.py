from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def serialize_event(event_type: str, data: dict[str, Any]) -> str:
    return json.dumps({"event": event_type, "data": data}, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Inverse of :func:`serialize_event`. Raises ``ValueError`` on a malformed message."""
    message = json.loads(raw)
    if not isinstance(message, dict):
        raise ValueError("bus message is not a JSON object")
    event_type, data = message.get("event"), message.get("data")
    if not isinstance(event_type, str) or not isinstance(data, dict):
        raise ValueError("bus message needs a string 'event' and an object 'data'")
    return event_type, data
