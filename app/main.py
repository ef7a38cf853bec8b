"""
Quill API - FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .database import engine, Base
from .logging_config import api_logger
from .middleware import SecurityHeadersMiddleware, RequestLoggingMiddleware
from .limiter import limiter
from .responses import api_exception_handler, domain_exception_handler
from .routes import (
    posts_router,
    comments_router,
    notifications_router,
    announcements_router,
    cleanup_router,
    events_router,
)
from .services.errors import DomainError
from .worker.cleanup_scheduler import CleanupScheduler

settings = get_settings()

# Create tables (in production, use Alembic migrations instead)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    scheduler = None
    if settings.cleanup_schedule_enabled:
        if settings.storage_configured:
            scheduler = CleanupScheduler()
            scheduler.start()
        else:
            api_logger.warning("Cleanup schedule enabled but storage is not configured")

    yield  # App is running

    if scheduler:
        await scheduler.stop()


app = FastAPI(
    title="Quill API",
    description="Backend API for the Quill blog platform",
    version="1.0.0",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(DomainError, domain_exception_handler)
app.add_exception_handler(HTTPException, api_exception_handler)

# Security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Request logging middleware (only in debug mode)
if settings.debug:
    app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "Origin",
        "X-Requested-With",
    ],
    max_age=3600,
)

# Routes
app.include_router(posts_router)
app.include_router(comments_router)
app.include_router(notifications_router)
app.include_router(announcements_router)
app.include_router(cleanup_router)
app.include_router(events_router)


@app.get("/api/health")
def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": "1.0.0",
        "storage_configured": settings.storage_configured,
    }


@app.get("/")
def root():
    return {
        "message": "Quill API",
        "docs": "/api/docs" if settings.debug else "Disabled in production",
    }
