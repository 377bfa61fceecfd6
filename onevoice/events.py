"""Broadcast stream events and their Server-Sent Events rendering.

Event types:
- ``line``: one log entry, payload is the entry itself (``{t, text|data, ...}``)
- ``ping``: keep-alive carrying the server time (``{t}``)
- ``error``: transient failure; the stream stays open (``{t, code, message}``)
- ``end``: the session is gone; the stream closes after this event
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .store import LogEntry, now_ms


class EventType(str, Enum):
    """Server-push event types."""

    LINE = "line"
    PING = "ping"
    ERROR = "error"
    END = "end"


@dataclass
class StreamEvent:
    """One event delivered to a listener."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, **self.data}

    def to_sse(self) -> str:
        """Render as an SSE frame: ``event: <type>\\ndata: <json>\\n\\n``."""
        payload = json.dumps(self.data, ensure_ascii=False, separators=(",", ":"))
        return f"event: {self.type.value}\ndata: {payload}\n\n"


def line_event(entry: LogEntry) -> StreamEvent:
    return StreamEvent(EventType.LINE, dict(entry))


def ping_event(t: int | None = None) -> StreamEvent:
    return StreamEvent(EventType.PING, {"t": now_ms() if t is None else t})


def error_event(code: str, message: str, t: int | None = None) -> StreamEvent:
    return StreamEvent(
        EventType.ERROR,
        {"t": now_ms() if t is None else t, "code": code, "message": message},
    )


def end_event(t: int | None = None) -> StreamEvent:
    return StreamEvent(EventType.END, {"t": now_ms() if t is None else t})


def parse_sse(text: str) -> list[StreamEvent]:
    """
    Parse SSE frames produced by ``StreamEvent.to_sse``.

    Comment lines and frames without a known event type are skipped.
    """
    events: list[StreamEvent] = []
    for frame in text.split("\n\n"):
        event_name = ""
        data_lines: list[str] = []
        for line in frame.splitlines():
            if line.startswith("event:"):
                event_name = line[len("event:") :].strip()
            elif line.startswith("data:"):
                data_lines.append(line[len("data:") :].strip())
        if not event_name:
            continue
        try:
            event_type = EventType(event_name)
        except ValueError:
            continue
        data = json.loads("\n".join(data_lines)) if data_lines else {}
        events.append(StreamEvent(event_type, data))
    return events


__all__ = [
    "EventType",
    "StreamEvent",
    "line_event",
    "ping_event",
    "error_event",
    "end_event",
    "parse_sse",
]
