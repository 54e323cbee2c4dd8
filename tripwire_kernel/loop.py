# tripwire_kernel/loop.py
"""
Control loop: pull events from a source and feed the decision engine
until the cancel token fires.

Read errors are logged and retried immediately, with no backoff or error
budget. A permanently failing source therefore spins at the source's own
pace until the caller cancels.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from .engine import DecisionEngine
from .errors import Cancelled, SourceError, TripwireError
from .source import EventSource

logger = logging.getLogger(__name__)


class ControlLoop:
    def __init__(self, engine: DecisionEngine, source: Optional[EventSource] = None):
        self.engine = engine
        self.source = source if source is not None else engine.source
        self.iterations = 0
        self.events_processed = 0
        self.read_errors = 0
        self.process_errors = 0

    def announce(self) -> None:
        policy = self.engine.policy
        logger.info(
            "Monitoring started",
            extra={
                "extra": {
                    "event": "startup",
                    "patterns": list(policy.patterns),
                    "threshold": policy.threshold,
                    "target_actor": policy.target_actor or None,
                }
            },
        )

    def run(self, cancel: threading.Event) -> None:
        """
        Run until `cancel` is set. Returns None on cancellation; never
        returns on its own otherwise.
        """
        while True:
            if cancel.is_set():
                return None
            self.iterations += 1

            try:
                event = self.source.next_event(cancel)
            except Cancelled:
                return None
            except SourceError as e:
                if cancel.is_set():
                    return None
                self.read_errors += 1
                logger.error(f"reading event: {e}")
                continue

            try:
                self.engine.process(event)
            except TripwireError as e:
                self.process_errors += 1
                logger.error(f"processing event: {e}")
                continue
            self.events_processed += 1
