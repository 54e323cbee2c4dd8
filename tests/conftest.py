# tests/conftest.py
"""
Shared pytest fixtures for the tripwire test suite.

This file is automatically loaded by pytest and makes fixtures
available to all test files in the tests/ directory.
"""
from __future__ import annotations

import threading
from typing import Callable, Iterable, Tuple

import pytest

from tripwire_kernel.engine import DecisionEngine
from tripwire_kernel.loop import ControlLoop
from tripwire_kernel.policy import EnginePolicy
from tripwire_kernel.sources.replay import ReplayEventSource, make_event


@pytest.fixture
def etc_policy() -> EnginePolicy:
    """Threshold 2 against everything under /etc."""
    return EnginePolicy(patterns=("/etc/*",), threshold=2)


@pytest.fixture
def sample_events():
    """
    Actor 1234 touching two disallowed files and one safe file.

    Returns:
        List of Event instances
    """
    return [
        make_event(1234, 1000, "myapp", "/etc/passwd"),
        make_event(1234, 1000, "myapp", "/home/user/safe.txt"),
        make_event(1234, 1000, "myapp", "/etc/shadow"),
    ]


@pytest.fixture
def build_engine() -> Callable[..., Tuple[DecisionEngine, ReplayEventSource]]:
    """Factory: (events, policy) -> (engine, source)."""

    def _build(events: Iterable, policy: EnginePolicy, **kwargs):
        source = ReplayEventSource(events)
        return DecisionEngine(source, policy, **kwargs), source

    return _build


@pytest.fixture
def run_to_idle():
    """
    Run a control loop in a thread until the replay source is drained,
    then cancel and return (loop, run() return value).
    """

    def _run(engine: DecisionEngine, source: ReplayEventSource, timeout: float = 5.0):
        loop = ControlLoop(engine)
        cancel = threading.Event()
        result = {}

        def target():
            result["ret"] = loop.run(cancel)

        worker = threading.Thread(target=target, daemon=True)
        worker.start()
        assert source.idle.wait(timeout), "replay source never drained"
        cancel.set()
        worker.join(timeout)
        assert not worker.is_alive(), "control loop did not stop after cancel"
        return loop, result["ret"]

    return _run
