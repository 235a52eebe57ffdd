"""
Tests for the circuitguard admin CLI.
"""

from circuitguard.cli import main
from circuitguard.core.circuit_breaker import CircuitBreakerRegistry


def open_circuit(registry, name="content_api"):
    breaker = registry.get(name)
    for _ in range(breaker.policy.failure_threshold):
        breaker.on_failure()
    return breaker


class TestStatusCommand:
    def test_status_closed(self, registry, capsys):
        assert main(["status"], registry=registry) == 0

        out = capsys.readouterr().out
        assert "Circuit Breaker: content_api" in out
        assert "State: CLOSED" in out
        assert "Failure count: 0 / 3" in out
        assert "Last failure" not in out

    def test_status_is_default_command(self, registry, capsys):
        assert main([], registry=registry) == 0
        assert "State: CLOSED" in capsys.readouterr().out

    def test_status_open_shows_reset_countdown(self, registry, clock, capsys):
        open_circuit(registry)
        clock.advance(12)

        assert main(["status", "content_api"], registry=registry) == 0

        out = capsys.readouterr().out
        assert "State: OPEN" in out
        assert "Failure count: 3 / 3" in out
        assert "Last failure: 2023-11-14 22:13:20 UTC" in out
        assert "Reset in: 18 seconds" in out

    def test_status_unknown_circuit(self, registry, capsys):
        assert main(["status", "missing"], registry=registry) == 1
        assert "Unknown circuit: missing" in capsys.readouterr().err

    def test_status_empty_registry(self, memory_store, test_settings, capsys):
        empty = CircuitBreakerRegistry(memory_store, test_settings)

        assert main(["status"], registry=empty) == 0
        assert "No circuit breakers registered." in capsys.readouterr().out


class TestResetCommand:
    def test_reset_named_circuit(self, registry, capsys):
        open_circuit(registry)

        assert main(["reset", "content_api"], registry=registry) == 0

        assert registry.get("content_api").is_closed()
        assert "reset to closed state" in capsys.readouterr().out

    def test_reset_all(self, registry):
        open_circuit(registry)
        open_circuit(registry, "search_api")

        assert main(["reset", "--all"], registry=registry) == 0

        assert set(registry.get_all_states().values()) == {"closed"}

    def test_reset_requires_name(self, registry, capsys):
        assert main(["reset"], registry=registry) == 1
        assert "Specify a circuit name" in capsys.readouterr().err

    def test_reset_unknown_circuit(self, registry):
        assert main(["reset", "missing"], registry=registry) == 1


class TestPurgeCommand:
    def test_purge_memory_store(self, registry, capsys):
        assert main(["purge"], registry=registry) == 0
        assert "not database-backed" in capsys.readouterr().out

    def test_purge_database_store(self, db_store, test_settings, clock, capsys):
        db_store.save("stale", "open", 10)
        clock.advance(60)
        registry = CircuitBreakerRegistry(db_store, test_settings, clock=clock)

        assert main(["purge"], registry=registry) == 0
        assert "Removed 1 expired circuit state row(s)." in capsys.readouterr().out
