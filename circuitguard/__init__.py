from circuitguard.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)
from circuitguard.core.config import CircuitPolicy
from circuitguard.core.errors import CircuitOpenError
from circuitguard.core.state_store import DatabaseStateStore, MemoryStateStore, StateStore

__version__ = "0.1.0"

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "CircuitPolicy",
    "CircuitOpenError",
    "StateStore",
    "MemoryStateStore",
    "DatabaseStateStore",
]
