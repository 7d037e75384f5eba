"""
Getaways Booking API - Main Application Entry Point

Reservations and payments for houseboats, restaurant tables and daily
travel excursions:
- Hosted checkout for website reservations and staff payment links
- Exactly-once reconciliation of paid sessions (redirect and webhook)
- Structured logging with request correlation
- Prometheus metrics and a Redis-backed per-session claim
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from getaways.core.config import get_settings
from getaways.core.errors import register_exception_handlers
from getaways.core.logging import setup_logging, get_logger
from getaways.core.metrics import metrics_endpoint
from getaways.api.router import api_router
from getaways.api.middleware import RequestLoggingMiddleware
from getaways.infrastructure import get_redis, close_redis, get_redis_status

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    if not settings.STRIPE_SECRET_KEY:
        logger.warning("stripe_not_configured", message="Checkout endpoints will answer 503")
    if not settings.RESEND_API_KEY:
        logger.warning("email_not_configured", message="Emails are logged, not sent")

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Session claims disabled, relying on database constraints")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Booking and payment reconciliation API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.SITE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "redis": await get_redis_status(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()
