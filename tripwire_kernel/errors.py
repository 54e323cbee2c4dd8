# tripwire_kernel/errors.py
"""
Exception taxonomy for the decision engine and its event sources.

Cancellation is modelled as an exception so blocking reads can unwind,
but the control loop treats it as a clean shutdown, never as a failure.
"""
from __future__ import annotations


class TripwireError(RuntimeError):
    """Base class for all tripwire runtime errors."""


class Cancelled(TripwireError):
    """Raised by a blocking source call once the cancel token fires."""


class SourceError(TripwireError):
    """The event source failed to read an event or honour a block request."""


class SourceClosedError(SourceError):
    """Any operation on a source after close()."""

    def __init__(self, message: str = "event source is closed"):
        super().__init__(message)


class EnforcementError(TripwireError):
    """
    The engine marked an actor blocked but the source rejected the block.

    Local bookkeeping is NOT rolled back; the original SourceError is
    available as __cause__.
    """

    def __init__(self, actor_id: int, message: str = ""):
        super().__init__(message or f"failed to block actor {actor_id}")
        self.actor_id = actor_id


class ConfigError(ValueError):
    """Invalid engine policy or runtime configuration."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)
