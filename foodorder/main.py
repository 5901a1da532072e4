"""
FastAPI Application Entry Point

Food Ordering Backend - Hybrid Architecture
Supports both Mock services (development) and Real APIs (production).

Endpoints (under API_PREFIX, default /api/v1):
    - /auth: Register, login, refresh, logout
    - /users: Profile and order history
    - /restaurants: Catalogue, menus, search, admin maintenance
    - /cart: Single-restaurant cart
    - /orders: Checkout, payment callback, status updates, cancellation
    - GET /health: System health check
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from foodorder.api import api_router
from foodorder.api.deps import get_correlation_id
from foodorder.core.config import get_settings, setup_logging
from foodorder.database import engine, get_db, init_db
from foodorder.exceptions import AppError
from foodorder.schemas import ErrorResponse, HealthResponse
from foodorder.services.cache import BaseCacheService, get_cache_service
from foodorder.services.payment import BasePaymentService, get_payment_service

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    # Log service configuration
    cache = get_cache_service()
    payment_service = get_payment_service()
    logger.info(f"Cache Service: {cache.provider_name}")
    logger.info(f"Payment Service: {payment_service.provider_name}")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await cache.close()
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant browsing, single-restaurant carts and hosted-checkout orders. "
        "Runs on mock services in development and real ones in production."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Credentialed CORS needs explicit origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    """Tag every request with an X-Correlation-Id and log its outcome."""
    cid = get_correlation_id(request.headers.get("x-correlation-id"))
    request.state.correlation_id = cid
    start = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Correlation-Id"] = cid
    logger.info(
        f"[cid={cid}] {request.method} {request.url.path} "
        f"→ {response.status_code} ({elapsed_ms:.1f} ms)"
    )
    return response


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.error,
            detail=exc.message,
            correlation_id=getattr(request.state, "correlation_id", None),
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal Server Error",
            detail=str(exc) if settings.debug else "An unexpected error occurred",
            correlation_id=getattr(request.state, "correlation_id", None),
        ).model_dump(),
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
        "api": settings.api_prefix,
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: BaseCacheService = Depends(get_cache_service),
    payment_service: BasePaymentService = Depends(get_payment_service),
) -> HealthResponse:
    """Verify all system components are operational."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    # Check cache
    cache_status = "healthy" if await cache.health_check() else "unhealthy"

    # Check payment service
    payment_status = "healthy" if await payment_service.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, cache_status, payment_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        cache=cache_status,
        payment_service=payment_status,
        timestamp=datetime.now(timezone.utc),
    )


app.include_router(api_router, prefix=settings.api_prefix)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "foodorder.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
