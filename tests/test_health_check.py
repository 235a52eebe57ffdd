"""
Tests for circuit breaker health checks.
"""

from unittest.mock import MagicMock

from circuitguard.core.health_check import HealthCheck


class TestCheckCircuitHealth:
    def test_all_closed_is_ok(self, registry):
        health = HealthCheck.check_circuit_health(registry)

        assert health["status"] == "ok"
        assert health["closed_circuits"] == ["content_api"]
        assert health["total_circuits"] == 1

    def test_open_circuit_is_critical(self, registry):
        registry.get("content_api").reset()
        registry.get("search_api", failure_threshold=1).on_failure()

        health = HealthCheck.check_circuit_health(registry)

        assert health["status"] == "critical"
        assert health["open_circuits"] == ["search_api"]
        assert health["total_circuits"] == 2

    def test_half_open_circuit_is_warning(self, registry, clock):
        breaker = registry.get("content_api")
        for _ in range(3):
            breaker.on_failure()
        clock.advance(30)

        # The operation runs while HALF_OPEN
        health = breaker.call(lambda: HealthCheck.check_circuit_health(registry))

        assert health["status"] == "warning"
        assert health["half_open_circuits"] == ["content_api"]

    def test_empty_registry_is_ok(self, memory_store, test_settings):
        from circuitguard.core.circuit_breaker import CircuitBreakerRegistry

        health = HealthCheck.check_circuit_health(CircuitBreakerRegistry(memory_store, test_settings))

        assert health["status"] == "ok"
        assert health["total_circuits"] == 0

    def test_store_error_is_warning(self):
        registry = MagicMock()
        registry.get_all_states.side_effect = RuntimeError("store unavailable")

        health = HealthCheck.check_circuit_health(registry)

        assert health["status"] == "warning"
        assert "store unavailable" in health["reason"]
