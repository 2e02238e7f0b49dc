"""FastAPI application for MedBookings scheduling."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medbookings import __version__
from medbookings.api.middleware import APIKeyMiddleware, RequestLoggingMiddleware
from medbookings.api.routes import availability, bookings, health
from medbookings.config import get_settings
from medbookings.scheduling.errors import (
    ConcurrentModificationError,
    HasActiveBookingsError,
    InvalidStatusTransitionError,
    NotFoundError,
    SchedulingError,
    SlotAlreadyBookedError,
    SlotUnavailableError,
    ValidationError,
    WouldExcludeBookingError,
    WouldRemoveBookedServiceError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[SchedulingError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    HasActiveBookingsError: 409,
    WouldExcludeBookingError: 409,
    WouldRemoveBookedServiceError: 409,
    SlotAlreadyBookedError: 409,
    SlotUnavailableError: 409,
    InvalidStatusTransitionError: 409,
    ConcurrentModificationError: 409,
}


def status_code_for(exc: SchedulingError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting MedBookings scheduling API")

    settings = get_settings()
    if settings.auto_create_tables:
        from medbookings.core.database import init_db

        await init_db()

    yield

    logger.info("Shutting down MedBookings scheduling API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="MedBookings Scheduling API",
        description="Recurring availability, slot materialization and conflict-free booking",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    if settings.has_api_key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.api_key)

    app.include_router(health.router, tags=["health"])
    app.include_router(availability.router, prefix="/api/v1", tags=["availability"])
    app.include_router(bookings.router, prefix="/api/v1", tags=["bookings"])

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        status_code = status_code_for(exc)
        logger.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.code)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug_mode else None,
            },
        )

    return app
