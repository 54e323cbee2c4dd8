# tripwire_kernel/types.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Mapping
import json


MAX_COMM_BYTES = 16
MAX_PATH_BYTES = 256


def trim_cstr(raw: bytes, limit: int) -> str:
    """Decode a bounded C string: cut at `limit` bytes, then at the first NUL."""
    raw = raw[:limit]
    nul = raw.find(b"\x00")
    if nul >= 0:
        raw = raw[:nul]
    return raw.decode("utf-8", errors="replace")


def bounded_text(value: str, limit: int) -> str:
    """Apply the same bounds to a Python string as the wire record would."""
    raw = value.encode("utf-8")[:limit]
    nul = raw.find(b"\x00")
    if nul >= 0:
        raw = raw[:nul]
    return raw.decode("utf-8", errors="ignore")


@dataclass(frozen=True)
class Event:
    """One observed access attempt, already decoded from the capture record."""
    actor_id: int
    owner_id: int
    actor_name: str
    resource_path: str
    flags: int = 0


class ActorState(str, Enum):
    UNSEEN = "unseen"
    VIOLATING = "violating"
    BLOCKED = "blocked"


class NotificationKind(str, Enum):
    VIOLATION = "violation"
    BLOCKED = "blocked"
    ENFORCEMENT_FAILED = "enforcement_failed"


@dataclass(frozen=True)
class Notification:
    """Observable outcome of processing a single event."""
    kind: NotificationKind
    actor_id: int
    actor_name: str
    resource_path: str
    count: int
    threshold: int

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind.value
        return d


@dataclass(frozen=True)
class LedgerSnapshot:
    counts: Mapping[int, int]
    blocked: frozenset

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "counts": {str(k): v for k, v in sorted(self.counts.items())},
            "blocked": sorted(self.blocked),
        }


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
