"""ClaimGate main application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from claimgate.api import router
from claimgate.api.deps import validate_auth_config
from claimgate.config import settings
from claimgate.db.base import close_db, init_db
from claimgate.engine.errors import (
    ClaimConflict,
    ClaimGateError,
    InvalidTransition,
    NotOwner,
    PaymentUnavailable,
    QuotaExceeded,
    StoreUnavailable,
    TaskNotFound,
    TerminalStateError,
)
from claimgate.integrations import get_notification_dispatcher

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("claimgate")

# Most specific first; ConcurrentUpdate is an InvalidTransition
ERROR_STATUS: list[tuple[type[ClaimGateError], int]] = [
    (TaskNotFound, 404),
    (NotOwner, 403),
    (ClaimConflict, 409),
    (QuotaExceeded, 409),
    (TerminalStateError, 409),
    (InvalidTransition, 409),
    (StoreUnavailable, 503),
    (PaymentUnavailable, 502),
]


def status_for(exc: ClaimGateError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting ClaimGate server...")
    logger.info("Environment: %s", settings.env.value)
    logger.info(
        "Claim quota: %d per provider, claim duration: %ds",
        settings.max_claims_per_provider,
        settings.claim_duration_seconds,
    )

    validate_auth_config()

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down ClaimGate server...")
    await get_notification_dispatcher().drain()
    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title="ClaimGate",
    description="Order claim and lifecycle coordinator for a repair-job marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=False,
    allow_methods=settings.cors_allowed_methods,
    allow_headers=settings.cors_allowed_headers,
)


@app.exception_handler(ClaimGateError)
async def claimgate_error_handler(request: Request, exc: ClaimGateError) -> JSONResponse:
    status_code = status_for(exc)
    if exc.retryable:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "retryable": exc.retryable,
            }
        },
    )


app.include_router(router)


def main():
    """Entry point for the application."""
    uvicorn.run(
        "claimgate.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
