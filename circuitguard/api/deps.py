from functools import lru_cache

from circuitguard.core.circuit_breaker import CircuitBreakerRegistry
from circuitguard.core.config import settings
from circuitguard.core.errors import notify_state_change
from circuitguard.core.state_store import build_state_store


@lru_cache(maxsize=1)
def get_registry() -> CircuitBreakerRegistry:
    """
    Process-wide breaker registry built from settings.

    Breakers listed in CIRCUIT_NAMES are registered up front so the admin
    surface can report them before their first call.
    """
    registry = CircuitBreakerRegistry(
        store=build_state_store(settings),
        settings=settings,
        on_state_change=notify_state_change,
    )
    for name in settings.CIRCUIT_NAMES:
        registry.get(name)
    return registry
