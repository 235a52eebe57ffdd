"""
Health checks over registered circuit breakers.

Usage:
    from circuitguard.core.health_check import HealthCheck

    circuits = HealthCheck.check_circuit_health(registry)
"""

from typing import Dict, Any, Literal

from circuitguard.core.circuit_breaker import CircuitBreakerRegistry, CircuitState
from circuitguard.core.errors import capture_exception
from circuitguard.core.logging_config import get_logger

logger = get_logger(__name__)

__all__ = ["HealthCheck", "ThresholdStatus"]

ThresholdStatus = Literal["ok", "warning", "critical"]


class HealthCheck:
    """
    Circuit breaker health.

    Returns:
    - status: "ok", "warning", or "critical"
    - Additional context for debugging
    """

    @staticmethod
    def check_circuit_health(registry: CircuitBreakerRegistry) -> Dict[str, Any]:
        """
        Check circuit breaker health.

        Checks:
        - Circuit states (open = critical, half open = warning)
        """
        try:
            states = registry.get_all_states()

            open_circuits = [name for name, state in states.items() if state == CircuitState.OPEN.value]
            half_open_circuits = [
                name for name, state in states.items() if state == CircuitState.HALF_OPEN.value
            ]
            closed_circuits = [
                name for name, state in states.items() if state == CircuitState.CLOSED.value
            ]

            status: ThresholdStatus = "ok"
            if open_circuits:
                status = "critical"
            elif half_open_circuits:
                status = "warning"

            return {
                "status": status,
                "open_circuits": open_circuits,
                "half_open_circuits": half_open_circuits,
                "closed_circuits": closed_circuits,
                "total_circuits": len(states),
            }

        except Exception as e:
            capture_exception(e, context={"operation": "check_circuit_health"})
            return {
                "status": "warning",
                "reason": f"Health check error: {str(e)}",
            }
