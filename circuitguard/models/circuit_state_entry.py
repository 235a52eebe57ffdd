"""
Circuit breaker state persistence model.

Stores breaker keys (state, failure count, last failure) as expiring rows so
breaker state survives deploys/restarts and is shared between processes.
"""

from datetime import datetime
from sqlmodel import Field, SQLModel

from circuitguard.core.typing import utc_now


class CircuitStateEntry(SQLModel, table=True):
    """One persisted breaker key."""

    key: str = Field(primary_key=True)  # e.g. "content_api_circuit_state"
    value: str
    expires_at: float = Field(index=True)  # unix seconds; rows at or past this read as absent
    updated_at: datetime = Field(default_factory=utc_now)
