"""
Circuit breaker admin CLI.

Usage:
    circuitguard status
    circuitguard status content_api
    circuitguard reset content_api
    circuitguard reset --all
    circuitguard purge
"""

import sys
from argparse import ArgumentParser, Namespace
from datetime import datetime, timezone
from typing import Optional, Sequence

from circuitguard.api.deps import get_registry
from circuitguard.core.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitState
from circuitguard.core.errors import UnknownCircuitError
from circuitguard.core.logging_config import configure_logging
from circuitguard.core.state_store import DatabaseStateStore


def print_status(breaker: CircuitBreaker) -> None:
    status = breaker.get_status()
    print(f"Circuit Breaker: {breaker.name}")
    print(f"  State: {status['state'].upper()}")
    print(f"  Failure count: {status['failures']} / {status['threshold']}")

    if status["last_failure"] > 0:
        last_failure = datetime.fromtimestamp(status["last_failure"], tz=timezone.utc)
        print(f"  Last failure: {last_failure:%Y-%m-%d %H:%M:%S} UTC")

        if status["state"] == CircuitState.OPEN.value:
            reset_at = status["last_failure"] + status["reset_seconds"]
            print(f"  Reset in: {max(0, reset_at - int(breaker.clock()))} seconds")
    print()


def cmd_status(registry: CircuitBreakerRegistry, args: Namespace) -> int:
    names = [args.name] if args.name else registry.names()
    if not names:
        print("No circuit breakers registered.")
        return 0
    for name in names:
        print_status(registry.lookup(name))
    print("Use 'reset <name>' to close a circuit, 'reset --all' to close every circuit")
    return 0


def cmd_reset(registry: CircuitBreakerRegistry, args: Namespace) -> int:
    if args.all:
        registry.reset_all()
        print(f"Reset {len(registry.names())} circuit breaker(s) to closed state.")
        return 0
    if not args.name:
        print("Specify a circuit name or --all", file=sys.stderr)
        return 1
    registry.lookup(args.name).reset()
    print(f"Circuit breaker {args.name} reset to closed state.")
    return 0


def cmd_purge(registry: CircuitBreakerRegistry, args: Namespace) -> int:
    if not isinstance(registry.store, DatabaseStateStore):
        print("Nothing to purge: state store is not database-backed.")
        return 0
    removed = registry.store.purge_expired()
    print(f"Removed {removed} expired circuit state row(s).")
    return 0


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="circuitguard", description="Inspect and reset circuit breakers")
    subparsers = parser.add_subparsers(dest="command")

    status_parser = subparsers.add_parser("status", help="Show circuit breaker status")
    status_parser.add_argument("name", nargs="?", help="Circuit name (default: all)")
    status_parser.set_defaults(handler=cmd_status)

    reset_parser = subparsers.add_parser("reset", help="Reset a circuit breaker to closed state")
    reset_parser.add_argument("name", nargs="?", help="Circuit name")
    reset_parser.add_argument("--all", action="store_true", help="Reset every registered circuit")
    reset_parser.set_defaults(handler=cmd_reset)

    purge_parser = subparsers.add_parser("purge", help="Delete expired state rows (database backend)")
    purge_parser.set_defaults(handler=cmd_purge)

    return parser


def main(argv: Optional[Sequence[str]] = None, registry: Optional[CircuitBreakerRegistry] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    # Show status by default
    if args.command is None:
        args = parser.parse_args(["status"])

    if registry is None:
        registry = get_registry()
    try:
        return args.handler(registry, args)
    except UnknownCircuitError as e:
        print(str(e), file=sys.stderr)
        return 1


def run() -> None:
    """Console entry point."""
    configure_logging()
    sys.exit(main())


if __name__ == "__main__":
    run()
