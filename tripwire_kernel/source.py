# tripwire_kernel/source.py
"""
EventSource contract consumed by the control loop.

Implementations live in tripwire_kernel.sources; the kernel never
intercepts anything at the OS level itself.
"""
from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from .types import Event


@runtime_checkable
class EventSource(Protocol):
    def next_event(self, cancel: threading.Event) -> Event:
        """
        Block until an event is available.

        Raises Cancelled once `cancel` is set and SourceError on failure.
        Exhausted sources keep blocking until cancellation.
        """
        ...

    def block(self, actor_id: int) -> None:
        """Deny the actor further access. Idempotent; SourceError if it cannot be honoured."""
        ...

    def close(self) -> None:
        """Release resources. Every later call raises SourceClosedError."""
        ...
