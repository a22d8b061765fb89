"""
FastAPI Application Entry Point.

This is the main application file for the TransportPro Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm.exc import StaleDataError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.redis_client import ping_redis
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    stale_data_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.audit_log import AuditLog
from backend.app.models.trip import Trip
from backend.app.models.truck import Truck

configure_logging(settings.log_level)
logger = logging.getLogger("transportpro")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Reports whether Redis (token revocation) is reachable.
    3. Disposes the connection pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not await ping_redis():
        logger.warning("Redis unavailable, token revocation checks will fail open")

    logger.info("%s started", settings.app_name)
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Fleet and trip management API: trucks, trips, profit and user permissions",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StaleDataError, stale_data_exception_handler)
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
        "message": "Welcome to TransportPro Backend API",
        "docs": "/docs",
        "health": "/health",
    }
