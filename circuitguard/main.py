from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from circuitguard.api import circuits
from circuitguard.api.deps import get_registry
from circuitguard.core.circuit_breaker import CircuitBreakerRegistry
from circuitguard.core.config import settings
from circuitguard.core.errors import CircuitOpenError, init_sentry, is_sentry_enabled
from circuitguard.core.health_check import HealthCheck
from circuitguard.core.logging_config import configure_logging, get_logger
from circuitguard.schemas import CircuitHealthOut

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_sentry(
        settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )
    registry = get_registry()
    logger.info(
        "Circuit Guard API starting",
        backend=settings.CIRCUIT_STATE_BACKEND,
        circuits=registry.names(),
        error_tracking=is_sentry_enabled(),
    )
    yield
    logger.info("Circuit Guard API stopped")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(circuits.router, prefix=f"{settings.API_V1_STR}/circuits", tags=["circuits"])


@app.exception_handler(CircuitOpenError)
async def circuit_open_handler(request: Request, exc: CircuitOpenError):
    """Routes calling a guarded dependency answer 503 while its circuit is open."""
    headers = {}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "circuit": exc.circuit},
        headers=headers,
    )


@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} API"}


@app.get("/health", response_model=CircuitHealthOut)
def health(registry: CircuitBreakerRegistry = Depends(get_registry)):
    return HealthCheck.check_circuit_health(registry)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("circuitguard.main:app", host="0.0.0.0", port=8000)
