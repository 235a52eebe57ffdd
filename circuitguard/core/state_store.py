"""
Key-value stores with per-key TTL for circuit breaker state.

A breaker keeps three keys (state, failure count, last failure timestamp),
all string values, all rewritten with the same TTL on every write so stale
breaker state expires on its own.

Backends:
- MemoryStateStore: per-process, backed by a cachetools TLRUCache
- DatabaseStateStore: shared between processes, backed by a SQLModel table
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

from cachetools import TLRUCache
from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from circuitguard.core.config import Settings
from circuitguard.core.logging_config import get_logger
from circuitguard.core.typing import col, utc_now
from circuitguard.models.circuit_state_entry import CircuitStateEntry

logger = get_logger(__name__)

Clock = Callable[[], float]

# Keys written together by one save_many
Record = Tuple[str, ...]


class StateStore(ABC):
    """String key-value store where every value carries a TTL in seconds."""

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent or expired."""

    @abstractmethod
    def save(self, key: str, value: str, ttl: int) -> None:
        """Store value under key for ttl seconds."""

    def load_many(self, keys: Iterable[str]) -> Dict[str, str]:
        """Return the present keys only; absent keys are left out."""
        values = {}
        for key in keys:
            value = self.load(key)
            if value is not None:
                values[key] = value
        return values

    def save_many(self, values: Mapping[str, str], ttl: int) -> None:
        for key, value in values.items():
            self.save(key, value, ttl)


def _item_expiry(record: Record, item: tuple[Dict[str, str], int], now: float) -> float:
    """TLRUCache time-to-use: each record carries its own TTL."""
    return now + item[1]


class _RecordCache(TLRUCache):
    """TLRUCache that reports records evicted for space (not expired ones)."""

    def __init__(self, *args, on_evict: Callable[[Record], None], **kwargs):
        super().__init__(*args, **kwargs)
        self._on_evict = on_evict

    def popitem(self):
        record, item = super().popitem()
        self._on_evict(record)
        return record, item


class MemoryStateStore(StateStore):
    """
    In-process store for single-process deployments and tests.

    Keys written by one save_many form a record: a single TLRUCache entry
    with a single TTL. When the cache is full a whole record is evicted, so a
    breaker's state, count and timestamp can never be split apart. Size
    ``maxsize`` for the number of breakers, not the number of keys.
    """

    def __init__(self, maxsize: int = 1024, clock: Clock = time.time):
        self._cache: TLRUCache = _RecordCache(
            maxsize=maxsize, ttu=_item_expiry, timer=clock, on_evict=self._evicted
        )
        self._records: Dict[str, Record] = {}  # key -> record holding its current value
        self._lock = threading.Lock()

    def _evicted(self, record: Record) -> None:
        live_keys = [key for key in record if self._records.get(key) == record]
        for key in live_keys:
            del self._records[key]
        if live_keys:
            logger.warning(
                "Memory state store full, evicted live circuit state",
                keys=live_keys,
                maxsize=self._cache.maxsize,
            )

    def load(self, key: str) -> Optional[str]:
        return self.load_many([key]).get(key)

    def save(self, key: str, value: str, ttl: int) -> None:
        self.save_many({key: value}, ttl)

    def load_many(self, keys: Iterable[str]) -> Dict[str, str]:
        values = {}
        with self._lock:
            for key in keys:
                record = self._records.get(key)
                if record is None:
                    continue
                item = self._cache.get(record)
                if item is None:
                    # expired
                    del self._records[key]
                    continue
                values[key] = item[0][key]
        return values

    def save_many(self, values: Mapping[str, str], ttl: int) -> None:
        record: Record = tuple(sorted(values))
        with self._lock:
            displaced = {self._records[key] for key in record if key in self._records} - {record}
            for key in record:
                self._records[key] = record
            # Drop older records whose keys have all moved to this one
            for old in displaced:
                if not any(self._records.get(key) == old for key in old):
                    self._cache.pop(old, None)
            self._cache[record] = (dict(values), ttl)

    def clear(self) -> None:
        """Drop every key (useful for testing)."""
        with self._lock:
            self._cache.clear()
            self._records.clear()


def _upsert(dialect_name: str, rows: list[dict]):
    """INSERT ... ON CONFLICT (key) DO UPDATE, so concurrent first writes of a key both succeed."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert

    stmt = insert(CircuitStateEntry).values(rows)
    return stmt.on_conflict_do_update(
        index_elements=["key"],
        set_={
            "value": stmt.excluded["value"],
            "expires_at": stmt.excluded["expires_at"],
            "updated_at": stmt.excluded["updated_at"],
        },
    )


class DatabaseStateStore(StateStore):
    """
    Store backed by the circuitstateentry table.

    Lets several server processes observe the same breaker state and keeps
    it across restarts. All keys of one save_many are written in a single
    transaction, so readers never see a half-applied transition. Writes are
    upserts, so two processes creating the same key at once both succeed.

    Database errors are logged and not raised: a failing state store reads
    as an empty (closed) breaker rather than breaking the guarded call.
    """

    def __init__(self, engine: Engine, clock: Clock = time.time):
        self._engine = engine
        self._clock = clock

    def load(self, key: str) -> Optional[str]:
        return self.load_many([key]).get(key)

    def save(self, key: str, value: str, ttl: int) -> None:
        self.save_many({key: value}, ttl)

    def load_many(self, keys: Iterable[str]) -> Dict[str, str]:
        keys = list(keys)
        now = self._clock()
        try:
            with Session(self._engine) as session:
                rows = session.exec(
                    select(CircuitStateEntry).where(col(CircuitStateEntry.key).in_(keys))
                ).all()
                return {row.key: row.value for row in rows if row.expires_at > now}
        except SQLAlchemyError as e:
            logger.warning("Failed to load circuit state", keys=keys, error=str(e))
            return {}

    def save_many(self, values: Mapping[str, str], ttl: int) -> None:
        expires_at = self._clock() + ttl
        updated_at = utc_now()
        rows = [
            {"key": key, "value": value, "expires_at": expires_at, "updated_at": updated_at}
            for key, value in values.items()
        ]
        if not rows:
            return
        try:
            with Session(self._engine) as session:
                session.execute(_upsert(self._engine.dialect.name, rows))
                session.commit()
        except SQLAlchemyError as e:
            logger.warning("Failed to persist circuit state", keys=list(values), error=str(e))

    def purge_expired(self) -> int:
        """Delete expired rows. Returns the number of rows removed."""
        now = self._clock()
        with Session(self._engine) as session:
            result = session.execute(
                delete(CircuitStateEntry).where(col(CircuitStateEntry.expires_at) <= now)
            )
            session.commit()
            return result.rowcount or 0


def build_state_store(settings: Settings, clock: Clock = time.time) -> StateStore:
    """Create the state store selected by CIRCUIT_STATE_BACKEND."""
    backend = settings.CIRCUIT_STATE_BACKEND.lower()
    if backend == "memory":
        return MemoryStateStore(maxsize=settings.CIRCUIT_MEMORY_MAXSIZE, clock=clock)
    if backend == "database":
        from circuitguard.db import engine, create_db_and_tables

        create_db_and_tables(engine)
        return DatabaseStateStore(engine, clock=clock)
    raise ValueError(f"Unknown CIRCUIT_STATE_BACKEND: {settings.CIRCUIT_STATE_BACKEND!r}")
