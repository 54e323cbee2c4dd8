# tests/test_config.py
"""Tests for tripwire_kernel/config.py."""
import os

import pytest

from tripwire_kernel.config import TripwireConfig, get_config, parse_patterns, reset_config
from tripwire_kernel.errors import ConfigError
from tripwire_kernel.policy import EnginePolicy


@pytest.fixture
def clean_env(monkeypatch):
    for key in list(os.environ.keys()):
        if key.startswith("TRIPWIRE_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


class TestParsePatterns:
    def test_splits_and_trims(self):
        assert parse_patterns(" /etc/passwd , /etc/shadow,secret ") == ("/etc/passwd", "/etc/shadow", "secret")

    def test_drops_blank_entries(self):
        """An empty pattern would match every path as a substring."""
        assert parse_patterns("/etc/*,, ,") == ("/etc/*",)
        assert parse_patterns("") == ()


class TestTripwireConfig:
    def test_default_values(self):
        config = TripwireConfig()
        assert config.threshold == 2
        assert config.target_pid == 0
        assert config.log_level == "INFO"
        assert config.log_format == "json"
        assert config.status_port == 0
        assert not config.has_status_api()

    def test_from_env_uses_defaults(self, clean_env):
        config = TripwireConfig.from_env()
        assert config.disallowed == ()
        assert config.events_path == "/run/tripwire/events"
        assert config.bpftool == "bpftool"

    def test_from_env_reads_vars(self, clean_env, monkeypatch):
        monkeypatch.setenv("TRIPWIRE_DISALLOWED", "/etc/passwd,/etc/shadow")
        monkeypatch.setenv("TRIPWIRE_THRESHOLD", "3")
        monkeypatch.setenv("TRIPWIRE_TARGET_PID", "1234")
        monkeypatch.setenv("TRIPWIRE_LOG_FORMAT", "TEXT")
        monkeypatch.setenv("TRIPWIRE_STATUS_PORT", "8088")

        config = TripwireConfig.from_env()
        assert config.disallowed == ("/etc/passwd", "/etc/shadow")
        assert config.threshold == 3
        assert config.target_pid == 1234
        assert config.log_format == "text"
        assert not config.structured_logs
        assert config.has_status_api()

    def test_from_env_rejects_non_numeric(self, clean_env, monkeypatch):
        monkeypatch.setenv("TRIPWIRE_THRESHOLD", "abc")
        monkeypatch.setenv("TRIPWIRE_POLL_INTERVAL", "fast")

        with pytest.raises(ConfigError) as exc_info:
            TripwireConfig.from_env()

        errors = exc_info.value.errors
        assert len(errors) == 2
        assert any("TRIPWIRE_THRESHOLD" in e for e in errors)
        assert any("TRIPWIRE_POLL_INTERVAL" in e for e in errors)

    def test_validate_valid_config(self):
        config = TripwireConfig(disallowed=("/etc/*",))
        assert config.validate() == []

    def test_validate_requires_patterns(self):
        errors = TripwireConfig().validate()
        assert any("pattern" in e for e in errors)

    @pytest.mark.parametrize("threshold", [0, -1])
    def test_validate_rejects_non_positive_threshold(self, threshold):
        errors = TripwireConfig(disallowed=("x",), threshold=threshold).validate()
        assert any("threshold" in e for e in errors)

    def test_validate_rejects_out_of_range_pid(self):
        errors = TripwireConfig(disallowed=("x",), target_pid=2**32).validate()
        assert any("target_actor" in e for e in errors)

    def test_validate_invalid_poll_interval(self):
        assert any("poll_interval" in e for e in TripwireConfig(disallowed=("x",), poll_interval=0).validate())
        assert any("60 second" in e for e in TripwireConfig(disallowed=("x",), poll_interval=120).validate())

    def test_validate_invalid_log_level(self):
        errors = TripwireConfig(disallowed=("x",), log_level="LOUD").validate()
        assert any("log_level" in e for e in errors)

    def test_validate_invalid_log_format(self):
        errors = TripwireConfig(disallowed=("x",), log_format="xml").validate()
        assert any("log_format" in e for e in errors)

    def test_validate_invalid_status_port(self):
        errors = TripwireConfig(disallowed=("x",), status_port=70000).validate()
        assert any("status_port" in e for e in errors)

    def test_policy_mirrors_config(self):
        config = TripwireConfig(disallowed=("/etc/*",), threshold=5, target_pid=42)
        assert config.policy() == EnginePolicy(patterns=("/etc/*",), threshold=5, target_actor=42)


class TestGetConfig:
    def test_returns_singleton(self, clean_env):
        assert get_config() is get_config()

    def test_reset_reloads_from_env(self, clean_env, monkeypatch):
        first = get_config()
        monkeypatch.setenv("TRIPWIRE_THRESHOLD", "9")
        reset_config()
        second = get_config()
        assert first is not second
        assert second.threshold == 9
