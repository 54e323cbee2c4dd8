# tripwire_ui/sse.py
"""Server-Sent Events helpers."""
from __future__ import annotations

import asyncio
import json
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from tripwire_kernel.types import Notification


async def sse_event(
    event: str,
    data: Any,
    id: Optional[str] = None
) -> str:
    """Format a single SSE event."""
    lines = []
    if id:
        lines.append(f"id: {id}")
    lines.append(f"event: {event}")

    if isinstance(data, (dict, list)):
        data_str = json.dumps(data)
    else:
        data_str = str(data)

    # SSE requires each data line to be prefixed
    for line in data_str.split('\n'):
        lines.append(f"data: {line}")

    lines.append("")  # Empty line terminates event
    return "\n".join(lines) + "\n"


async def send_heartbeat() -> str:
    """Send a heartbeat comment to keep connection alive."""
    return ": heartbeat\n\n"


class NotificationHub:
    """
    Fan engine notifications out to SSE listeners.

    publish() is called from the control-loop thread; each listener queue
    belongs to the event loop that registered it, so delivery goes through
    call_soon_threadsafe.
    """

    def __init__(self, history: int = 100):
        self._lock = threading.Lock()
        self._listeners: Dict[int, Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = {}
        self._next_id = 0
        self._recent: Deque[Notification] = deque(maxlen=history)
        self._seq = 0

    def register(self) -> Tuple[int, asyncio.Queue]:
        """Register a listener. Must be called from inside a running event loop."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            listener_id = self._next_id
            self._next_id += 1
            self._listeners[listener_id] = (loop, queue)
        return listener_id, queue

    def unregister(self, listener_id: int) -> None:
        with self._lock:
            self._listeners.pop(listener_id, None)

    def publish(self, note: Notification) -> None:
        with self._lock:
            self._seq += 1
            self._recent.append(note)
            item = (self._seq, note)
            listeners = list(self._listeners.items())

        for listener_id, (loop, queue) in listeners:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, item)
            except RuntimeError:
                # Listener's loop already shut down.
                self.unregister(listener_id)

    def recent(self) -> List[Notification]:
        with self._lock:
            return list(self._recent)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
