"""
FastAPI Application Entry Point.

This is the main application file for the EV Fleet Operations Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from evfleet.app.core.config import settings
from evfleet.app.api.v1.router import router as api_v1_router
from evfleet.app.core.observability import ObservabilityMiddleware, configure_logging
from evfleet.app.db.session import engine, Base, AsyncSessionLocal
from evfleet.app.services.trip_scheduler import trip_scheduler
from evfleet.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from evfleet.app.models.vehicle import Vehicle
from evfleet.app.models.driver import Driver
from evfleet.app.models.charger import Charger
from evfleet.app.models.trip import Trip
from evfleet.app.models.audit_log import AuditLog

logger = logging.getLogger("evfleet")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging.
    2. Creates database tables on startup.
    3. Rebuilds the trip scheduler's interval index from the store.
    4. Disposes the engine on shutdown.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        await trip_scheduler.rebuild_index(session)
    logger.info("%s started", settings.app_name)
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Scheduling and operational risk backend for an electric vehicle fleet",
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
        "indexed_bookings": len(trip_scheduler.index),
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
        "message": "Welcome to the EV Fleet Operations API",
        "docs": "/docs",
        "health": "/health",
    }
