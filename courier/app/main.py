"""
FastAPI Application Entry Point.

This is the main application file for the Courier Delivery Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from courier.app.core.config import settings
from courier.app.api.v1.router import router as api_v1_router
from courier.app.db.session import engine, Base
from courier.app.core.observability import ObservabilityMiddleware, configure_logging
from courier.app.core.redis_client import ping_redis
from courier.app.core.reliability import routing_circuit_breaker
from courier.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from courier.app.models.user import User
from courier.app.models.audit_log import AuditLog
from courier.app.models.driver_profile import DriverProfile
from courier.app.models.job import Job
from courier.app.models.job_stop import JobStop
from courier.app.models.driver_session import DriverSession
from courier.app.models.status_outbox import StatusOutbox

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Backend for a courier app: jobs board, stop-by-stop delivery flow and dispatch dashboard",
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
        dict: Status, application info, Redis reachability and the
        routing circuit state
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
        "routing_circuit": routing_circuit_breaker.state,
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
        "message": "Welcome to Courier Delivery Backend API",
        "docs": "/docs",
        "health": "/health",
    }
