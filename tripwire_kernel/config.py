# tripwire_kernel/config.py
"""
Environment configuration with validation.

All tripwire settings can be overridden via TRIPWIRE_ prefixed env vars;
command-line flags take precedence over the environment.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .errors import ConfigError
from .policy import ALL_ACTORS, EnginePolicy


def parse_patterns(raw: str) -> Tuple[str, ...]:
    """Split a comma-separated pattern list, trimming whitespace and dropping blanks."""
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def _env_number(name: str, default: str, cast: Callable[[str], Any], errors: List[str]) -> Any:
    raw = os.getenv(name, default)
    try:
        return cast(raw.strip())
    except ValueError:
        errors.append(f"{name} must be a number, got {raw!r}")
        return cast(default)


@dataclass(frozen=True)
class TripwireConfig:
    """
    Validated tripwire configuration.

    Environment variables (all optional, with defaults):
    - TRIPWIRE_DISALLOWED: Comma-separated disallowed patterns
    - TRIPWIRE_THRESHOLD: Violations before an actor is blocked
    - TRIPWIRE_TARGET_PID: Only watch this PID (0 = all)
    - TRIPWIRE_EVENTS_PATH: FIFO carrying capture records
    - TRIPWIRE_BLOCK_MAP: Pinned blocked_pids map path
    - TRIPWIRE_BPFTOOL: bpftool binary
    - TRIPWIRE_POLL_INTERVAL: Seconds between cancel checks while reading
    - TRIPWIRE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    - TRIPWIRE_LOG_FORMAT: json or text
    - TRIPWIRE_STATUS_HOST / TRIPWIRE_STATUS_PORT: status API bind (port 0 = off)
    """

    # Policy
    disallowed: Tuple[str, ...] = field(default_factory=tuple)
    threshold: int = 2
    target_pid: int = ALL_ACTORS

    # Capture subsystem
    events_path: str = "/run/tripwire/events"
    block_map: str = "/sys/fs/bpf/tripwire/blocked_pids"
    bpftool: str = "bpftool"
    poll_interval: float = 0.2

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Status API
    status_host: str = "127.0.0.1"
    status_port: int = 0

    @classmethod
    def from_env(cls) -> "TripwireConfig":
        """
        Load configuration from environment variables.

        Raises ConfigError listing every numeric variable that does not parse.
        """
        errors: List[str] = []
        threshold = _env_number("TRIPWIRE_THRESHOLD", "2", int, errors)
        target_pid = _env_number("TRIPWIRE_TARGET_PID", "0", int, errors)
        poll_interval = _env_number("TRIPWIRE_POLL_INTERVAL", "0.2", float, errors)
        status_port = _env_number("TRIPWIRE_STATUS_PORT", "0", int, errors)
        if errors:
            raise ConfigError(errors)

        return cls(
            disallowed=parse_patterns(os.getenv("TRIPWIRE_DISALLOWED", "")),
            threshold=threshold,
            target_pid=target_pid,
            events_path=os.getenv("TRIPWIRE_EVENTS_PATH", "/run/tripwire/events"),
            block_map=os.getenv("TRIPWIRE_BLOCK_MAP", "/sys/fs/bpf/tripwire/blocked_pids"),
            bpftool=os.getenv("TRIPWIRE_BPFTOOL", "bpftool"),
            poll_interval=poll_interval,
            log_level=os.getenv("TRIPWIRE_LOG_LEVEL", "INFO"),
            log_format=os.getenv("TRIPWIRE_LOG_FORMAT", "json").lower(),
            status_host=os.getenv("TRIPWIRE_STATUS_HOST", "127.0.0.1"),
            status_port=status_port,
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors: List[str] = []

        errors.extend(self.policy().validate())

        if self.poll_interval <= 0:
            errors.append("poll_interval must be positive")
        if self.poll_interval > 60:
            errors.append("poll_interval exceeds 60 second limit")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Invalid log_level: {self.log_level}")
        if self.log_format not in ("json", "text"):
            errors.append(f"Invalid log_format: {self.log_format}")

        if not 0 <= self.status_port <= 65535:
            errors.append(f"status_port out of range: {self.status_port}")

        return errors

    def policy(self) -> EnginePolicy:
        return EnginePolicy(
            patterns=self.disallowed,
            threshold=self.threshold,
            target_actor=self.target_pid,
        )

    @property
    def structured_logs(self) -> bool:
        return self.log_format == "json"

    def has_status_api(self) -> bool:
        return self.status_port > 0


# Global singleton (lazy loaded)
_config: Optional[TripwireConfig] = None


def get_config() -> TripwireConfig:
    """Get the global configuration, loading from env if needed."""
    global _config
    if _config is None:
        _config = TripwireConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    global _config
    _config = None
