"""
FastAPI Application Entry Point.

This is the main application file for the Ride Match Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base, AsyncSessionLocal
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.redis_client import get_redis, ping_redis, close_redis
from backend.app.domain.matching.engine import MatchingEngine
from backend.app.domain.matching.policy import MatchingPolicy
from backend.app.services.notification_service import MatchNotifier
from backend.app.services.rematch_worker import RematchScheduler
from backend.app.services.route_lock import RouteResolutionLock
from backend.app.services.routing_provider import MapboxRoutingClient

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.trip import Trip
from backend.app.models.match import Match
from backend.app.models.notification import Notification
from backend.app.models.dlq import DeadLetterQueue

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Builds the matching engine and its collaborators.
    3. Cancels background rematches and closes clients on shutdown.
    """
    configure_logging(settings.log_level)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    routing_client = MapboxRoutingClient.from_settings(settings)
    if not settings.mapbox_access_token:
        logger.warning("MAPBOX_ACCESS_TOKEN is not set; match searches will fail route resolution")

    route_lock = None
    if settings.route_lock_enabled:
        route_lock = RouteResolutionLock(
            get_redis(),
            ttl_seconds=settings.route_lock_ttl_seconds,
            poll_interval=settings.route_lock_poll_interval_seconds,
        )

    scheduler = RematchScheduler(AsyncSessionLocal)
    app.state.rematch_scheduler = scheduler
    app.state.matching_engine = MatchingEngine(
        AsyncSessionLocal,
        routing_client,
        notifier=MatchNotifier(AsyncSessionLocal),
        scheduler=scheduler,
        route_lock=route_lock,
        policy=MatchingPolicy.from_settings(settings),
    )

    yield

    await scheduler.shutdown()
    await routing_client.aclose()
    await close_redis()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Ride sharing backend matching drivers and riders by route overlap",
    lifespan=lifespan,
)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.add_middleware(ObservabilityMiddleware)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    redis_ok = await ping_redis() if settings.route_lock_enabled else None
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": redis_ok,
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
        "message": "Welcome to Ride Match Backend API",
        "docs": "/docs",
        "health": "/health",
    }
