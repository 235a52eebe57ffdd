"""
Type helpers for SQLAlchemy/SQLModel compatibility with type checkers.

SQLModel fields are declared with Python types (e.g., `expires_at: float`) but
at the class level they're InstrumentedAttribute descriptors with SQLAlchemy
column methods like .in_(), .is_(), comparison operators, etc.
"""

from typing import TYPE_CHECKING, TypeVar
from datetime import datetime, timezone

if TYPE_CHECKING:
    from sqlalchemy.orm.attributes import InstrumentedAttribute

T = TypeVar("T")


def col(attr: T) -> "InstrumentedAttribute[T]":
    """
    Type helper for SQLAlchemy column operations in queries.

    At runtime this is a no-op - it just returns the input unchanged.

    Usage:
        select(CircuitStateEntry).where(col(CircuitStateEntry.key).in_(keys))
    """
    return attr  # type: ignore[return-value]


def utc_now() -> datetime:
    """
    Get current UTC time (timezone-aware).

    Use as default_factory in SQLModel fields.
    """
    return datetime.now(timezone.utc)


__all__ = [
    "col",
    "utc_now",
]
