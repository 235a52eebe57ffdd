"""
Test fixtures for circuitguard tests.

Provides a controllable clock, state store fixtures and a breaker registry.
"""

import pytest
from typing import Generator
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

import circuitguard.models  # noqa: F401  (registers tables on SQLModel.metadata)
from circuitguard.core.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from circuitguard.core.config import CircuitPolicy, Settings
from circuitguard.core.state_store import DatabaseStateStore, MemoryStateStore

# 2023-11-14 22:13:20 UTC
START_TIME = 1_700_000_000.0


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryStateStore:
    return MemoryStateStore(clock=clock)


@pytest.fixture
def policy() -> CircuitPolicy:
    """Threshold 3, reset timeout 30 seconds."""
    return CircuitPolicy(failure_threshold=3, reset_timeout=30)


@pytest.fixture
def breaker(memory_store: MemoryStateStore, policy: CircuitPolicy, clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker(name="content_api", store=memory_store, policy=policy, clock=clock)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        CIRCUIT_THRESHOLD=3,
        CIRCUIT_RESET_SECONDS=30,
        CIRCUIT_STATE_TTL=3600,
        CIRCUIT_STATE_BACKEND="memory",
        CIRCUIT_NAMES=["content_api"],
    )


@pytest.fixture
def registry(memory_store: MemoryStateStore, test_settings: Settings, clock: FakeClock) -> CircuitBreakerRegistry:
    registry = CircuitBreakerRegistry(store=memory_store, settings=test_settings, clock=clock)
    registry.get("content_api")
    return registry


# Use in-memory SQLite for database store tests (fast, isolated)
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def test_engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_store(test_engine: Engine, clock: FakeClock) -> DatabaseStateStore:
    return DatabaseStateStore(test_engine, clock=clock)
