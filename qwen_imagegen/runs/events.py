"""Append-only events stream."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from ..utils import now_utc_iso, sanitize_payload


@dataclass
class EventWriter:
    path: Path
    run_id: str
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        event = {
            "type": event_type,
            "run_id": self.run_id,
            "ts": now_utc_iso(),
        }
        event.update(sanitize_payload(payload))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = f"{json.dumps(event)}\n"
        with self._lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        return event


class EventLogger:
    """Logger sink that records each message as a ``log`` event."""

    def __init__(self, events: EventWriter) -> None:
        self.events = events

    def info(self, message: str, **fields: Any) -> None:
        self.events.emit("log", level="info", message=message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.events.emit("log", level="error", message=message, **fields)


class NullLogger:
    def info(self, message: str, **fields: Any) -> None:
        return None

    def error(self, message: str, **fields: Any) -> None:
        return None
