# tripwire_kernel/policy.py
"""
Engine policy is STATIC for the lifetime of a monitoring session.
Nothing here is learned or mutated once the engine is built.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from .errors import ConfigError


ALL_ACTORS = 0
MAX_ACTOR_ID = 0xFFFFFFFF


@dataclass(frozen=True)
class EnginePolicy:
    """
    Disallowed patterns, escalation threshold and optional target actor.

    Pattern order only affects how early matching short-circuits, never
    the outcome.
    """
    patterns: Tuple[str, ...] = field(default_factory=tuple)
    threshold: int = 2
    target_actor: int = ALL_ACTORS

    @classmethod
    def build(
        cls,
        patterns: Iterable[str],
        threshold: int = 2,
        target_actor: int = ALL_ACTORS,
    ) -> "EnginePolicy":
        """Build and validate a policy, raising ConfigError on bad input."""
        policy = cls(patterns=tuple(patterns), threshold=threshold, target_actor=target_actor)
        policy.check()
        return policy

    @property
    def filters_actor(self) -> bool:
        return self.target_actor != ALL_ACTORS

    def admits(self, actor_id: int) -> bool:
        """True if events from this actor are in scope."""
        return not self.filters_actor or actor_id == self.target_actor

    def validate(self) -> List[str]:
        errors: List[str] = []
        if not self.patterns:
            errors.append("at least one disallowed pattern is required")
        if self.threshold < 1:
            errors.append(f"threshold must be a positive integer, got {self.threshold}")
        if not 0 <= self.target_actor <= MAX_ACTOR_ID:
            errors.append(f"target_actor out of range: {self.target_actor}")
        return errors

    def check(self) -> None:
        errors = self.validate()
        if errors:
            raise ConfigError(errors)
