"""
FastAPI API Service Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.routes import appointments, pending_bookings, subscriptions
from booking.errors import (
    AppointmentNotFoundError,
    BookingError,
    BookingValidationError,
    InvalidTransitionError,
    NotPermittedError,
    SlotConflictError,
    StoreError,
)
from shared.config import get_settings
from shared.logging_config import configure_logging
from shared.redis_client import close_redis_client

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    yield
    logger.info("Application shutting down...")
    await close_redis_client()


app = FastAPI(
    title="Glam Booking API",
    version="1.0.0",
    lifespan=lifespan,
)

settings = get_settings()
origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(appointments.router)
app.include_router(pending_bookings.router)
app.include_router(subscriptions.router)

# Checked in order; subclasses before BookingError
ERROR_STATUS_CODES: list[tuple[type[BookingError], int]] = [
    (BookingValidationError, 400),
    (NotPermittedError, 403),
    (AppointmentNotFoundError, 404),
    (InvalidTransitionError, 409),
    (SlotConflictError, 409),
    (StoreError, 503),
]


def status_code_for(exc: BookingError) -> int:
    for error_cls, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_cls):
            return code
    return 500


@app.exception_handler(BookingError)
async def booking_exception_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Render scheduling failures as {success, error_code, error_message, details}."""
    code = status_code_for(exc)
    log = logger.error if code >= 500 else logger.info
    log(
        f"{exc.error_code}: {exc.message}",
        extra={"request_path": request.url.path, "error_code": exc.error_code},
    )
    return JSONResponse(status_code=code, content=exc.to_dict())


# Exception handler for validation errors
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": exc.errors(include_url=False, include_context=False)},
    )


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Health check endpoint for Docker health checks and monitoring.

    Checks:
    - Redis connectivity (PING command)
    - PostgreSQL connectivity (SELECT 1 query)

    Returns:
        200 OK if all systems healthy
        503 Service Unavailable if degraded
    """
    from sqlalchemy import text

    from database.connection import get_async_session
    from shared.redis_client import get_redis_client

    health_status = {
        "status": "healthy",
        "redis": "unknown",
        "postgres": "unknown",
    }
    status_code = 200

    try:
        redis_client = get_redis_client()
        await redis_client.ping()
        health_status["redis"] = "connected"
    except Exception:
        health_status["redis"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    try:
        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
            health_status["postgres"] = "connected"
    except Exception:
        health_status["postgres"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    return JSONResponse(status_code=status_code, content=health_status)
