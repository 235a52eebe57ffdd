from .circuit_state_entry import CircuitStateEntry

__all__ = [
    "CircuitStateEntry",
]
