# tripwire_kernel/__init__.py
from .types import Event, ActorState, Notification, NotificationKind, LedgerSnapshot
from .errors import (
    TripwireError,
    Cancelled,
    SourceError,
    SourceClosedError,
    EnforcementError,
    ConfigError,
)
from .policy import EnginePolicy, ALL_ACTORS
from .matcher import matches, first_match
from .ledger import ViolationLedger
from .source import EventSource
from .engine import DecisionEngine
from .loop import ControlLoop

__all__ = [
    "Event",
    "ActorState",
    "Notification",
    "NotificationKind",
    "LedgerSnapshot",
    "TripwireError",
    "Cancelled",
    "SourceError",
    "SourceClosedError",
    "EnforcementError",
    "ConfigError",
    "EnginePolicy",
    "ALL_ACTORS",
    "matches",
    "first_match",
    "ViolationLedger",
    "EventSource",
    "DecisionEngine",
    "ControlLoop",
]
