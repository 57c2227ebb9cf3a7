"""
FastAPI Application Entry Point.

This is the main application file for the Rental Booking Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from rental_backend.app.core.config import settings
from rental_backend.app.api.v1.router import router as api_v1_router
from rental_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from rental_backend.app.core.redis_client import ping_redis
from rental_backend.app.db.session import engine, Base
from rental_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from rental_backend.app.models.user import User
from rental_backend.app.models.driver import Driver
from rental_backend.app.models.vehicle import Vehicle
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_payment import BookingPayment
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.models.settlement_failure import SettlementFailure
from rental_backend.app.models.audit_log import AuditLog
from rental_backend.app.models.topup_request import TopUpRequest


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures the `rental` loggers.
    2. Creates database tables on startup.
    """
    configure_logging(settings.log_level)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Driver rental booking settlement backend",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Rental Booking Backend API",
        "docs": "/docs",
        "health": "/health",
    }
