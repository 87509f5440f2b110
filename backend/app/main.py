"""
FastAPI Application Entry Point.

This is the main application file for the Gym Ledger Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.observability import ObservabilityMiddleware, install_log_correlation
from backend.app.core.redis_client import redis_client, ping_redis, close_redis
from backend.app.db.session import engine, Base, AsyncSessionLocal
from backend.app.domain.entitlements.coordinator import build_synchronizer
from backend.app.services.notification_service import NotificationService
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.customer import Customer
from backend.app.models.membership_plan import MembershipPlan
from backend.app.models.membership import Membership
from backend.app.models.pt_package import PtPackage, CustomerPtPackage
from backend.app.models.bill import Bill
from backend.app.models.payment import Payment
from backend.app.models.audit_log import AuditLog

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"
)
install_log_correlation(logging.getLogger().handlers)
logger = logging.getLogger("gym")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Creates the application session's synchronizer and notification feed.
    3. Closes the Redis connection on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not await ping_redis():
        logger.warning("Redis is not reachable; customer views will be recomputed on every read")

    app.state.synchronizer = build_synchronizer(redis_client, AsyncSessionLocal)
    app.state.notifier = NotificationService()
    yield
    await close_redis()
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Customer financial ledger and entitlement service for gym front-desk operations",
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
        dict: Status, application information and cache reachability
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "cache": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Gym Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
