from dataclasses import dataclass
from typing import Protocol

from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CIRCUIT_THRESHOLD = 5
DEFAULT_CIRCUIT_RESET_SECONDS = 30
DEFAULT_CIRCUIT_STATE_TTL = 3600  # 1 hour, stale breaker state self-heals


class Settings(BaseSettings):
    PROJECT_NAME: str = "Circuit Guard"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"  # "development", "staging" or "production"
    LOG_LEVEL: str = "INFO"

    # Sentry error tracking (optional, needs sentry-sdk installed)
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Only used when CIRCUIT_STATE_BACKEND == "database"
    DATABASE_URL: str = "sqlite:///./circuitguard.db"

    # Circuit breaker policy
    CIRCUIT_STATE_BACKEND: str = "memory"  # "memory" or "database"
    CIRCUIT_THRESHOLD: int = DEFAULT_CIRCUIT_THRESHOLD  # consecutive failures before opening
    CIRCUIT_RESET_SECONDS: int = DEFAULT_CIRCUIT_RESET_SECONDS  # wait before a recovery attempt
    CIRCUIT_STATE_TTL: int = DEFAULT_CIRCUIT_STATE_TTL
    CIRCUIT_MEMORY_MAXSIZE: int = 1024  # breaker records, not keys
    CIRCUIT_NAMES: list[str] = ["content_api"]  # breakers registered at startup

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")


class PolicyConfig(Protocol):
    """Read accessors a breaker needs from its configuration."""

    @property
    def failure_threshold(self) -> int: ...

    @property
    def reset_timeout(self) -> int: ...


@dataclass(frozen=True)
class CircuitPolicy:
    failure_threshold: int = DEFAULT_CIRCUIT_THRESHOLD
    reset_timeout: int = DEFAULT_CIRCUIT_RESET_SECONDS  # seconds

    @classmethod
    def from_settings(cls, settings: "Settings", **overrides: int) -> "CircuitPolicy":
        """
        Build a policy from settings, with optional per-breaker overrides.

        Zero or negative values fall back to the defaults (5 failures, 30 seconds)
        so an empty environment variable never disables the breaker.
        """
        threshold = overrides.get("failure_threshold", settings.CIRCUIT_THRESHOLD)
        reset_timeout = overrides.get("reset_timeout", settings.CIRCUIT_RESET_SECONDS)
        return cls(
            failure_threshold=threshold if threshold > 0 else DEFAULT_CIRCUIT_THRESHOLD,
            reset_timeout=reset_timeout if reset_timeout > 0 else DEFAULT_CIRCUIT_RESET_SECONDS,
        )


settings = Settings()
