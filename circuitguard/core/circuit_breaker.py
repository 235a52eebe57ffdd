import inspect
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial, wraps
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional, TypedDict, TypeVar

import anyio.to_thread

from circuitguard.core.config import (
    DEFAULT_CIRCUIT_STATE_TTL,
    CircuitPolicy,
    PolicyConfig,
    Settings,
)
from circuitguard.core.errors import CircuitOpenError, UnknownCircuitError
from circuitguard.core.logging_config import get_logger
from circuitguard.core.state_store import Clock, StateStore

logger = get_logger(__name__)

T = TypeVar("T")

# Type alias for notification callback - return value is ignored
StateChangeCallback = Callable[[str, str, str], Any]  # (name, old_state, new_state)


class CircuitState(Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if recovered


class CircuitStatus(TypedDict):
    state: str
    failures: int
    last_failure: int
    threshold: int
    reset_seconds: int


class _Snapshot(NamedTuple):
    state: CircuitState
    failures: int
    last_failure: int


def _parse_int(value: Optional[str]) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


@dataclass
class CircuitBreaker:
    """
    Guard for calls to an unreliable dependency.

    State lives in the given StateStore under three keys derived from
    ``namespace`` (defaults to ``name``), so breakers sharing a database store
    see the same state across processes. Recovery from OPEN is checked lazily
    on the next call; there is no background timer.

    Usage:
        breaker = CircuitBreaker(name="content_api", store=MemoryStateStore())
        metadata = breaker.call(lambda: client.fetch_metadata(identifier))
    """

    name: str
    store: StateStore
    policy: PolicyConfig = field(default_factory=CircuitPolicy)
    namespace: Optional[str] = None
    label: Optional[str] = None  # dependency name used in fast-fail messages
    state_ttl: int = DEFAULT_CIRCUIT_STATE_TTL  # seconds
    clock: Clock = time.time
    on_state_change: Optional[StateChangeCallback] = None

    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def __post_init__(self):
        prefix = self.namespace or self.name
        self.state_key = f"{prefix}_circuit_state"
        self.failures_key = f"{prefix}_circuit_failures"
        self.last_failure_key = f"{prefix}_circuit_last_failure"

    # -- persistence -------------------------------------------------------

    def _now(self) -> int:
        return int(self.clock())

    def _read(self) -> _Snapshot:
        values = self.store.load_many([self.state_key, self.failures_key, self.last_failure_key])
        try:
            state = CircuitState(values.get(self.state_key) or CircuitState.CLOSED.value)
        except ValueError:
            state = CircuitState.CLOSED
        return _Snapshot(
            state=state,
            failures=_parse_int(values.get(self.failures_key)),
            last_failure=_parse_int(values.get(self.last_failure_key)),
        )

    def _write(
        self,
        state: CircuitState,
        failures: int,
        last_failure: int,
    ) -> None:
        """Write all three keys together so they share one TTL."""
        values = {
            self.state_key: state.value,
            self.failures_key: str(failures),
            self.last_failure_key: str(last_failure),
        }
        self.store.save_many(values, self.state_ttl)

    def _state_changed(self, old: CircuitState, new: CircuitState, **context: Any) -> None:
        """Log a transition and run the notification callback. Never raises."""
        if new is CircuitState.OPEN:
            logger.warning(
                "Circuit state changed",
                circuit=self.name,
                old_state=old.value,
                new_state=new.value,
                **context,
            )
        else:
            logger.info(
                "Circuit state changed",
                circuit=self.name,
                old_state=old.value,
                new_state=new.value,
                **context,
            )
        if self.on_state_change:
            try:
                self.on_state_change(self.name, old.value, new.value)
            except Exception as e:
                logger.error("Circuit breaker notification failed", circuit=self.name, error=str(e))

    # -- state machine -----------------------------------------------------

    def _before_call(self) -> None:
        """Reject the call while OPEN, or move OPEN -> HALF_OPEN once the reset timeout passed."""
        with self._lock:
            snapshot = self._read()
            if snapshot.state is not CircuitState.OPEN:
                return

            reset_timeout = self.policy.reset_timeout
            elapsed = self._now() - snapshot.last_failure
            if elapsed < reset_timeout:
                raise CircuitOpenError.from_remaining(
                    self.name,
                    reset_timeout - elapsed,
                    label=self.label,
                )

            self._write(CircuitState.HALF_OPEN, snapshot.failures, snapshot.last_failure)
        self._state_changed(CircuitState.OPEN, CircuitState.HALF_OPEN, elapsed=elapsed)

    def call(self, operation: Callable[[], T]) -> T:
        """
        Run ``operation`` under breaker protection.

        Raises CircuitOpenError without running the operation while the
        circuit is open. Errors raised by the operation are recorded as a
        failure and re-raised unchanged.
        """
        self._before_call()
        try:
            result = operation()
        except Exception:
            self.on_failure()
            raise
        self.on_success()
        return result

    async def acall(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Async variant of call() for operations returning an awaitable.

        State store access is blocking (a database round trip for the shared
        backend), so it runs in AnyIO's worker threads to keep the event loop
        free. The operation itself runs on the loop.
        """
        await anyio.to_thread.run_sync(self._before_call)
        try:
            result = await operation()
        except Exception:
            await anyio.to_thread.run_sync(self.on_failure)
            raise
        await anyio.to_thread.run_sync(self.on_success)
        return result

    def protect(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """
        Decorator running every invocation of ``func`` through the breaker.

        Usage:
            @breaker.protect
            def fetch_metadata(identifier: str) -> dict:
                ...
        """
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                return await self.acall(partial(func, *args, **kwargs))

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(partial(func, *args, **kwargs))

        return wrapper

    def on_success(self) -> None:
        """Record a success: failure count 0, state CLOSED. Safe from any state."""
        with self._lock:
            snapshot = self._read()
            self._write(CircuitState.CLOSED, 0, snapshot.last_failure)
        if snapshot.state is not CircuitState.CLOSED:
            self._state_changed(snapshot.state, CircuitState.CLOSED)

    def on_failure(self) -> None:
        """
        Record a failure: bump the count and the last failure time.

        Opens the circuit once the count reaches the threshold. A failure
        while HALF_OPEN re-opens immediately; a failure while OPEN keeps it
        OPEN. The count has no ceiling.
        """
        with self._lock:
            snapshot = self._read()
            failures = snapshot.failures + 1
            threshold = self.policy.failure_threshold
            if snapshot.state is not CircuitState.CLOSED or failures >= threshold:
                new_state = CircuitState.OPEN
            else:
                new_state = CircuitState.CLOSED
            self._write(new_state, failures, self._now())
        if new_state is not snapshot.state:
            self._state_changed(snapshot.state, new_state, failures=failures, threshold=threshold)

    def get_state(self) -> CircuitState:
        """Current persisted state, CLOSED when nothing is stored."""
        return self._read().state

    def get_failure_count(self) -> int:
        return self._read().failures

    def get_last_failure_time(self) -> int:
        """Unix seconds of the last recorded failure, 0 when none."""
        return self._read().last_failure

    def is_open(self) -> bool:
        return self.get_state() is CircuitState.OPEN

    def is_closed(self) -> bool:
        return self.get_state() is CircuitState.CLOSED

    def reset(self) -> None:
        """Force the circuit CLOSED with a zero count (manual reset from admin or CLI)."""
        with self._lock:
            snapshot = self._read()
            self._write(CircuitState.CLOSED, 0, snapshot.last_failure)
        logger.info("Circuit manually reset", circuit=self.name, old_state=snapshot.state.value)
        if snapshot.state is not CircuitState.CLOSED:
            self._state_changed(snapshot.state, CircuitState.CLOSED, manual=True)

    def get_status(self) -> CircuitStatus:
        """Read-only snapshot for monitoring."""
        snapshot = self._read()
        return {
            "state": snapshot.state.value,
            "failures": snapshot.failures,
            "last_failure": snapshot.last_failure,
            "threshold": self.policy.failure_threshold,
            "reset_seconds": self.policy.reset_timeout,
        }


class CircuitBreakerRegistry:
    """
    One breaker per protected dependency, all sharing a store and settings.

    Create one registry at startup and pass it to whatever needs breakers
    (API dependencies, CLI, health checks).
    """

    def __init__(
        self,
        store: StateStore,
        settings: Settings,
        clock: Clock = time.time,
        on_state_change: Optional[StateChangeCallback] = None,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock
        self.on_state_change = on_state_change
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str, **kwargs) -> CircuitBreaker:
        """
        Return the breaker for ``name``, creating it on first use.

        ``failure_threshold`` and ``reset_timeout`` override the settings
        policy; other kwargs go to CircuitBreaker. Kwargs are ignored once
        the breaker exists.
        """
        with self._lock:
            if name not in self._breakers:
                policy_overrides = {
                    key: kwargs.pop(key) for key in ("failure_threshold", "reset_timeout") if key in kwargs
                }
                self._breakers[name] = CircuitBreaker(
                    name=name,
                    store=self.store,
                    policy=CircuitPolicy.from_settings(self.settings, **policy_overrides),
                    state_ttl=self.settings.CIRCUIT_STATE_TTL,
                    clock=self.clock,
                    on_state_change=self.on_state_change,
                    **kwargs,
                )
            return self._breakers[name]

    def lookup(self, name: str) -> CircuitBreaker:
        """Return an existing breaker, raising UnknownCircuitError otherwise."""
        with self._lock:
            try:
                return self._breakers[name]
            except KeyError:
                raise UnknownCircuitError(name) from None

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._breakers)

    def get_all_states(self) -> Dict[str, str]:
        return {name: self.lookup(name).get_state().value for name in self.names()}

    def get_all_statuses(self) -> Dict[str, CircuitStatus]:
        return {name: self.lookup(name).get_status() for name in self.names()}

    def reset_all(self) -> None:
        for name in self.names():
            self.lookup(name).reset()
