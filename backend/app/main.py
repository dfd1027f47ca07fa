"""
FastAPI Application Entry Point.

This is the main application file for the FoodShare Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.redis_client import ping_redis
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.services.expiry_sweeper import start_expiry_scheduler

# Import models to ensure they are registered with Base
from backend.app.models.user import User  # noqa: F401
from backend.app.models.donation import Donation  # noqa: F401
from backend.app.models.audit_log import AuditLog  # noqa: F401
from backend.app.models.volunteer import VolunteerProfile, VolunteerReview  # noqa: F401
from backend.app.models.contact import ContactMessage, ContactNote  # noqa: F401

logger = logging.getLogger("foodshare")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Starts the periodic expiry sweep and stops it on shutdown.
    """
    configure_logging(settings.log_level)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scheduler = start_expiry_scheduler(settings.expiry_sweep_interval_seconds)
    logger.info("%s started", settings.app_name)
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Food donation marketplace: donors list surplus food, volunteers and charities reserve and collect it",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
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
        "message": "Welcome to the FoodShare API",
        "docs": "/docs",
        "health": "/health",
    }
