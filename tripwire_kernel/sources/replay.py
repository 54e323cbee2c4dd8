# tripwire_kernel/sources/replay.py
"""
Deterministic event source: replays a fixed sequence, then blocks until
cancellation. Used by tests and by `tripwire_cli replay`.
"""
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Set

from ..errors import Cancelled, SourceClosedError, SourceError
from ..types import MAX_COMM_BYTES, MAX_PATH_BYTES, Event, bounded_text


def make_event(
    pid: int,
    uid: int,
    comm: str,
    filename: str,
    flags: int = 0,
) -> Event:
    """Build an Event with the same bounds the capture record imposes."""
    return Event(
        actor_id=pid,
        owner_id=uid,
        actor_name=bounded_text(comm, MAX_COMM_BYTES),
        resource_path=bounded_text(filename, MAX_PATH_BYTES),
        flags=flags,
    )


def load_events_jsonl(path: str | Path) -> List[Event]:
    """
    Load recorded events, one JSON object per line:
    {"pid": 1234, "uid": 1000, "comm": "cat", "filename": "/etc/passwd", "flags": 0}
    """
    events: List[Event] = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
                events.append(
                    make_event(
                        int(obj["pid"]),
                        int(obj.get("uid", 0)),
                        str(obj.get("comm", "")),
                        str(obj["filename"]),
                        int(obj.get("flags", 0)),
                    )
                )
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                raise SourceError(f"{path}:{lineno}: invalid event record: {e}") from e
    return events


class ReplayEventSource:
    """
    Replays a fixed event sequence, then parks readers until cancellation.

    close() does not wake a parked reader; only the cancel token does.
    Later calls raise SourceClosedError.
    """

    def __init__(self, events: Iterable[Event] = ()):
        self._lock = threading.Lock()
        self._events: Sequence[Event] = tuple(events)
        self._index = 0
        self._blocked: Set[int] = set()
        self._block_calls: Dict[int, int] = {}
        self._closed = False
        # Set once a reader is parked on an exhausted source, i.e. every
        # replayed event has been fully handled by a sequential consumer.
        self.idle = threading.Event()

    def next_event(self, cancel: threading.Event) -> Event:
        with self._lock:
            if self._closed:
                raise SourceClosedError()
            if cancel.is_set():
                raise Cancelled()
            if self._index < len(self._events):
                event = self._events[self._index]
                self._index += 1
                return event

        self.idle.set()
        cancel.wait()
        raise Cancelled()

    def block(self, actor_id: int) -> None:
        with self._lock:
            if self._closed:
                raise SourceClosedError()
            self._blocked.add(actor_id)
            self._block_calls[actor_id] = self._block_calls.get(actor_id, 0) + 1

    def close(self) -> None:
        with self._lock:
            self._closed = True

    # ---- test helpers ----

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def remaining(self) -> int:
        with self._lock:
            return len(self._events) - self._index

    def is_blocked(self, actor_id: int) -> bool:
        with self._lock:
            return actor_id in self._blocked

    def block_calls(self, actor_id: int) -> int:
        with self._lock:
            return self._block_calls.get(actor_id, 0)
