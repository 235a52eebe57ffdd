"""
Admin endpoints for inspecting and resetting circuit breakers.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from circuitguard.api.deps import get_registry
from circuitguard.core.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitState
from circuitguard.core.errors import UnknownCircuitError
from circuitguard.core.logging_config import get_logger
from circuitguard.schemas import CircuitListOut, CircuitOut

logger = get_logger(__name__)

router = APIRouter()


def _circuit_out(breaker: CircuitBreaker) -> CircuitOut:
    circuit_status = breaker.get_status()
    retry_in = None
    if circuit_status["state"] == CircuitState.OPEN.value:
        reset_at = circuit_status["last_failure"] + circuit_status["reset_seconds"]
        retry_in = max(0, reset_at - int(breaker.clock()))
    return CircuitOut(name=breaker.name, retry_in=retry_in, **circuit_status)


def _lookup(registry: CircuitBreakerRegistry, name: str) -> CircuitBreaker:
    try:
        return registry.lookup(name)
    except UnknownCircuitError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=CircuitListOut)
def list_circuits(registry: CircuitBreakerRegistry = Depends(get_registry)):
    """Status of every registered circuit breaker."""
    return CircuitListOut(circuits=registry.get_all_statuses())


@router.get("/{name}", response_model=CircuitOut)
def get_circuit(name: str, registry: CircuitBreakerRegistry = Depends(get_registry)):
    return _circuit_out(_lookup(registry, name))


@router.post("/{name}/reset", response_model=CircuitOut)
def reset_circuit(name: str, registry: CircuitBreakerRegistry = Depends(get_registry)):
    """Force a circuit back to CLOSED, e.g. after confirming the dependency recovered."""
    breaker = _lookup(registry, name)
    breaker.reset()
    logger.info("Circuit reset via admin API", circuit=name)
    return _circuit_out(breaker)
