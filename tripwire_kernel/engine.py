# tripwire_kernel/engine.py
"""
Decision engine: filter, classify, count, enforce.

Per-actor lifecycle is UNSEEN -> VIOLATING -> BLOCKED. Enforcement is
issued at most once per actor. The local BLOCKED flip happens before the
source confirms the block and is kept even if the block call fails.
"""
from __future__ import annotations

import logging
from typing import Callable, FrozenSet, List, Optional

from .errors import EnforcementError, SourceError
from .ledger import ViolationLedger
from .logging import log_block, log_security_event, log_violation
from .matcher import matches
from .policy import EnginePolicy
from .source import EventSource
from .types import ActorState, Event, LedgerSnapshot, Notification, NotificationKind

logger = logging.getLogger(__name__)

Listener = Callable[[Notification], None]


class DecisionEngine:
    def __init__(
        self,
        source: EventSource,
        policy: EnginePolicy,
        listeners: Optional[List[Listener]] = None,
    ):
        policy.check()
        self.source = source
        self.policy = policy
        self._ledger = ViolationLedger()
        self._listeners: List[Listener] = list(listeners or [])

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, note: Notification) -> None:
        # A failing listener must not skip enforcement or stop the loop.
        for listener in self._listeners:
            try:
                listener(note)
            except Exception as e:
                log_security_event(
                    logger,
                    "listener_failed",
                    {"actor_id": note.actor_id, "kind": note.kind.value, "error": repr(e)},
                    severity="error",
                    exc_info=e,
                )

    def _note(self, kind: NotificationKind, event: Event, count: int) -> Notification:
        return Notification(
            kind=kind,
            actor_id=event.actor_id,
            actor_name=event.actor_name,
            resource_path=event.resource_path,
            count=count,
            threshold=self.policy.threshold,
        )

    def process(self, event: Event) -> Optional[Notification]:
        """
        Apply one event. Returns the last notification emitted, or None
        if the event was filtered out or did not match.

        Raises EnforcementError when the source rejects a block request.
        """
        if not self.policy.admits(event.actor_id):
            return None

        if not matches(event.resource_path, self.policy.patterns):
            return None

        record = self._ledger.record_violation(event.actor_id, self.policy.threshold)
        note = self._note(NotificationKind.VIOLATION, event, record.count)
        log_violation(logger, note)
        self._notify(note)

        if not record.newly_blocked:
            return note

        try:
            self.source.block(event.actor_id)
        except SourceError as e:
            failed = self._note(NotificationKind.ENFORCEMENT_FAILED, event, record.count)
            log_security_event(
                logger,
                "enforcement_failed",
                {"actor_id": event.actor_id, "error": str(e)},
                severity="error",
                exc_info=e,
            )
            self._notify(failed)
            raise EnforcementError(event.actor_id, f"failed to block PID {event.actor_id}: {e}") from e

        blocked = self._note(NotificationKind.BLOCKED, event, record.count)
        log_block(logger, blocked)
        self._notify(blocked)
        return blocked

    # ---- queries (safe from any thread) ----

    def total_violation_count(self) -> int:
        return self._ledger.total()

    def violation_count(self, actor_id: int) -> int:
        return self._ledger.count(actor_id)

    def is_blocked(self) -> bool:
        """True if any actor has been blocked."""
        return self._ledger.any_blocked()

    def is_actor_blocked(self, actor_id: int) -> bool:
        return self._ledger.is_blocked(actor_id)

    def blocked_actors(self) -> FrozenSet[int]:
        return self._ledger.blocked()

    def actor_state(self, actor_id: int) -> ActorState:
        return self._ledger.state(actor_id)

    def snapshot(self) -> LedgerSnapshot:
        return self._ledger.snapshot()
