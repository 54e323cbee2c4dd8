# tripwire_kernel/ledger.py
"""
Per-actor violation ledger and the blocked-actor set.

Both are monotonic for the ledger's lifetime: counts only grow, entries
are never removed, and a blocked actor is never unblocked. One writer
(the control loop) mutates; any thread may query.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Set
import threading

from .types import ActorState, LedgerSnapshot


@dataclass(frozen=True)
class ViolationRecord:
    actor_id: int
    count: int
    newly_blocked: bool


class ViolationLedger:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Dict[int, int] = {}
        self._blocked: Set[int] = set()

    def record_violation(self, actor_id: int, threshold: int) -> ViolationRecord:
        """
        Count one violation for `actor_id`.

        The blocked-set insertion happens in the same critical section as
        the increment, so an actor crosses the threshold exactly once.
        """
        with self._lock:
            count = self._counts.get(actor_id, 0) + 1
            self._counts[actor_id] = count
            newly_blocked = count >= threshold and actor_id not in self._blocked
            if newly_blocked:
                self._blocked.add(actor_id)
        return ViolationRecord(actor_id=actor_id, count=count, newly_blocked=newly_blocked)

    def count(self, actor_id: int) -> int:
        with self._lock:
            return self._counts.get(actor_id, 0)

    def total(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    def is_blocked(self, actor_id: int) -> bool:
        with self._lock:
            return actor_id in self._blocked

    def any_blocked(self) -> bool:
        with self._lock:
            return bool(self._blocked)

    def blocked(self) -> FrozenSet[int]:
        with self._lock:
            return frozenset(self._blocked)

    def state(self, actor_id: int) -> ActorState:
        with self._lock:
            if actor_id in self._blocked:
                return ActorState.BLOCKED
            if self._counts.get(actor_id, 0) > 0:
                return ActorState.VIOLATING
            return ActorState.UNSEEN

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                counts=MappingProxyType(dict(self._counts)),
                blocked=frozenset(self._blocked),
            )
