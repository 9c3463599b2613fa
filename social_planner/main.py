"""
Social Planner API - FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .database import engine, Base
from .errors import PlannerError
from .limiter import limiter
from .logging_config import api_logger, log_request
from .middleware import SecurityHeadersMiddleware
from .responses import planner_exception_handler, http_exception_handler, unhandled_exception_handler
from .routes import approvals_router, auth_router, connections_router, posts_router
from . import models  # noqa: F401  registers tables on Base

settings = get_settings()

# Create tables (in production, use Alembic migrations instead)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the publishing scheduler with the app and stop it on shutdown"""
    scheduler = None
    if settings.scheduler_enabled:
        from .worker.scheduler import get_scheduler
        scheduler = get_scheduler()
        scheduler.start_background()

    yield  # App is running

    if scheduler is not None and scheduler.running:
        scheduler.stop()


app = FastAPI(
    title=settings.app_name,
    description="Schedule, approve and publish posts to Facebook and LinkedIn",
    version="1.0.0",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_exception_handler(PlannerError, planner_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(SecurityHeadersMiddleware)

# Request logging middleware (only in debug mode)
if settings.debug:
    app.add_middleware(log_request(api_logger))

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

app.include_router(auth_router)
app.include_router(posts_router)
app.include_router(approvals_router)
app.include_router(connections_router)


@app.get("/api/health")
def health_check():
    """Health check endpoint for load balancers and monitoring."""
    from .worker.scheduler import get_scheduler
    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": "1.0.0",
        "scheduler": get_scheduler().get_status() if settings.scheduler_enabled else None,
    }
