# tripwire_kernel/logging.py
"""
Structured logging for the tripwire kernel.

Provides consistent, JSON-formatted logging for violations, blocks and
control-loop failures.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from .types import Notification


PACKAGE_LOGGER = "tripwire_kernel"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "extra"):
            log_entry.update(record.extra)

        # Add exception info if present
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def _make_handler(structured: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    return handler


def configure_logging(level: str = "INFO", structured: bool = True) -> logging.Logger:
    """Install a single handler on the kernel package logger, replacing any previous one."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.addHandler(_make_handler(structured))
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def log_violation(logger: logging.Logger, note: Notification) -> None:
    logger.warning(
        f"[VIOLATION {note.count}/{note.threshold}] PID {note.actor_id} ({note.actor_name}) "
        f"opened disallowed file: {note.resource_path}",
        extra={"extra": {"event": "violation", **note.to_dict()}},
    )


def log_block(logger: logging.Logger, note: Notification) -> None:
    logger.critical(
        f"PID {note.actor_id} is now BLOCKED from opening any further files",
        extra={"extra": {"event": "blocked", **note.to_dict()}},
    )


def log_security_event(
    logger: logging.Logger,
    event_type: str,
    details: dict[str, Any],
    severity: str = "warning",
    exc_info: Optional[BaseException] = None,
):
    """Log a security-relevant event."""
    level = getattr(logging, severity.upper(), logging.WARNING)
    logger.log(
        level,
        f"Security event: {event_type}",
        exc_info=exc_info,
        extra={
            "extra": {
                "event": "security",
                "event_type": event_type,
                "details": details,
            }
        },
    )
