"""
Tests for settings and circuit policy configuration.
"""

import pytest

from circuitguard.core.config import CircuitPolicy, Settings


class TestSettingsDefaults:
    def test_circuit_defaults(self, monkeypatch):
        for name in ("CIRCUIT_THRESHOLD", "CIRCUIT_RESET_SECONDS", "CIRCUIT_STATE_TTL", "CIRCUIT_STATE_BACKEND"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.CIRCUIT_THRESHOLD == 5
        assert settings.CIRCUIT_RESET_SECONDS == 30
        assert settings.CIRCUIT_STATE_TTL == 3600
        assert settings.CIRCUIT_STATE_BACKEND == "memory"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CIRCUIT_THRESHOLD", "8")
        monkeypatch.setenv("CIRCUIT_RESET_SECONDS", "90")

        settings = Settings(_env_file=None)

        assert settings.CIRCUIT_THRESHOLD == 8
        assert settings.CIRCUIT_RESET_SECONDS == 90


class TestCircuitPolicy:
    def test_defaults(self):
        policy = CircuitPolicy()
        assert policy.failure_threshold == 5
        assert policy.reset_timeout == 30

    def test_from_settings(self):
        policy = CircuitPolicy.from_settings(Settings(CIRCUIT_THRESHOLD=3, CIRCUIT_RESET_SECONDS=45))

        assert policy == CircuitPolicy(failure_threshold=3, reset_timeout=45)

    @pytest.mark.parametrize("threshold,reset_seconds", [(0, 0), (-1, -10)])
    def test_non_positive_values_fall_back_to_defaults(self, threshold, reset_seconds):
        policy = CircuitPolicy.from_settings(
            Settings(CIRCUIT_THRESHOLD=threshold, CIRCUIT_RESET_SECONDS=reset_seconds)
        )

        assert policy.failure_threshold == 5
        assert policy.reset_timeout == 30

    def test_overrides(self):
        policy = CircuitPolicy.from_settings(
            Settings(CIRCUIT_THRESHOLD=3, CIRCUIT_RESET_SECONDS=45),
            reset_timeout=300,
        )

        assert policy.failure_threshold == 3
        assert policy.reset_timeout == 300

    def test_policy_is_immutable(self):
        policy = CircuitPolicy()
        with pytest.raises(AttributeError):
            policy.failure_threshold = 10  # type: ignore[misc]
