"""
Error types and error reporting for circuit breakers.

Provides:
- CircuitOpenError, raised when a breaker fast-fails a call
- UnknownCircuitError, raised when an admin surface names an unregistered breaker
- Optional Sentry reporting with structured logging as the fallback

Usage:
    try:
        breaker.call(fetch_metadata)
    except CircuitOpenError as e:
        # dependency is known-bad, back off for e.retry_after seconds
        ...

    # Report a non-exception event (e.g. a circuit opening)
    capture_message("Circuit content_api opened", level="warning")
"""

from typing import Any, Callable, Dict, Optional
from datetime import datetime, timezone

from circuitguard.core.logging_config import get_logger

logger = get_logger(__name__)

__all__ = [
    "CircuitGuardError",
    "CircuitOpenError",
    "UnknownCircuitError",
    "init_sentry",
    "capture_exception",
    "capture_message",
    "is_sentry_enabled",
    "notify_state_change",
]


class CircuitGuardError(Exception):
    """Base class for errors raised by circuitguard itself."""


class CircuitOpenError(CircuitGuardError):
    """
    Raised instead of calling the dependency while its circuit is open.

    Distinct from whatever the wrapped operation raises, so callers can
    tell "the dependency is known to be down, back off" apart from
    "this particular call failed".

    Attributes:
        cause: Optional underlying exception (also chained as __cause__)
        code: Optional numeric error code
        circuit: Name of the breaker that rejected the call
        retry_after: Whole seconds until the next recovery attempt
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        code: int = 0,
        *,
        circuit: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.code = code
        self.circuit = circuit
        self.retry_after = retry_after
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def from_remaining(
        cls,
        circuit: str,
        remaining_seconds: int,
        label: Optional[str] = None,
        cause: Optional[BaseException] = None,
        code: int = 0,
    ) -> "CircuitOpenError":
        """Build the standard fast-fail error quoting the remaining wait time."""
        dependency = label or f"{circuit} API"
        message = (
            f"Circuit breaker is open. {dependency} appears to be unavailable. "
            f"Will retry in {remaining_seconds} seconds."
        )
        return cls(message, cause, code, circuit=circuit, retry_after=remaining_seconds)

    def __str__(self) -> str:
        return self.message


class UnknownCircuitError(CircuitGuardError, KeyError):
    """Raised when looking up a breaker name that was never registered."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown circuit: {self.name}"


# Lazy-loaded Sentry SDK (optional dependency)
_sentry_initialized: bool = False


def init_sentry(
    dsn: str,
    environment: str = "production",
    traces_sample_rate: float = 0.1,
    release: Optional[str] = None,
) -> bool:
    """
    Initialize Sentry SDK for error tracking.

    Args:
        dsn: Sentry DSN (from project settings)
        environment: Environment name (production, staging, development)
        traces_sample_rate: Percentage of transactions to trace (0.0-1.0)
        release: Release version

    Returns:
        True if initialization successful, False otherwise
    """
    global _sentry_initialized

    if not dsn:
        logger.info("Sentry disabled (no DSN provided)")
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration
        import logging

        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            traces_sample_rate=traces_sample_rate,
            release=release,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(
                    level=logging.INFO,
                    event_level=logging.ERROR,
                ),
            ],
            # Fast-fail rejections are expected while a dependency is down
            ignore_errors=[
                KeyboardInterrupt,
                SystemExit,
                CircuitOpenError,
            ],
        )

        _sentry_initialized = True
        logger.info(
            "Sentry initialized",
            environment=environment,
            traces_sample_rate=traces_sample_rate,
            release=release,
        )
        return True

    except ImportError:
        logger.warning("Sentry SDK not installed, error tracking disabled")
        return False
    except Exception as e:
        logger.error("Failed to initialize Sentry", error=str(e))
        return False


def is_sentry_enabled() -> bool:
    """Check if Sentry is initialized and available."""
    return _sentry_initialized


def _send_to_sentry(
    send: Callable[[Any], Optional[str]],
    context: Dict[str, Any],
    tags: Optional[Dict[str, str]],
    level: str,
) -> Optional[str]:
    """Run ``send(sentry_sdk)`` inside a scope carrying context, tags and level."""
    if not _sentry_initialized:
        return None
    try:
        import sentry_sdk

        with sentry_sdk.push_scope() as scope:
            for key, value in context.items():
                if value is not None:
                    scope.set_extra(key, value)
            for key, value in (tags or {}).items():
                scope.set_tag(key, value)
            scope.level = level
            return send(sentry_sdk)
    except Exception as e:
        logger.warning("Failed to send event to Sentry", error=str(e))
        return None


def capture_exception(
    exc: BaseException,
    context: Optional[Dict[str, Any]] = None,
    level: str = "error",
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Capture an exception with Sentry and structured logging.

    Args:
        exc: Exception to capture
        context: Additional context dict (e.g., {"circuit": "content_api"})
        level: Severity level (debug, info, warning, error, fatal)
        tags: Additional tags for filtering in Sentry

    Returns:
        Sentry event ID or None if not sent
    """
    enriched_context = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "error_type": type(exc).__name__,
        **(context or {}),
    }

    # Logged even without Sentry
    logger.error("Exception captured", exc_info=exc, **enriched_context)

    return _send_to_sentry(lambda sdk: sdk.capture_exception(exc), enriched_context, tags, level)


def capture_message(
    message: str,
    level: str = "info",
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """Capture a non-exception event, such as a circuit state change."""
    enriched_context = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **(context or {}),
    }

    log_func = getattr(logger, level, logger.info)
    log_func(message, **enriched_context)

    return _send_to_sentry(
        lambda sdk: sdk.capture_message(message, level=level), enriched_context, tags, level
    )


def notify_state_change(name: str, old_state: str, new_state: str) -> None:
    """State-change callback that reports breaker transitions as events."""
    level = "warning" if new_state == "open" else "info"
    capture_message(
        f"Circuit {name}: {old_state.upper()} -> {new_state.upper()}",
        level=level,
        context={"circuit": name, "old_state": old_state, "new_state": new_state},
        tags={"circuit": name},
    )
