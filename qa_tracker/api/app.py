"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from qa_tracker.api.dependencies import cleanup_dependencies, get_tracker
from qa_tracker.api.middleware.timeout import TimeoutMiddleware
from qa_tracker.api.routes import (
    audit_queue,
    disputes,
    evaluations,
    health,
    question_sets,
    settings as settings_routes,
    statistics,
    users,
)
from qa_tracker.config.settings import get_settings
from qa_tracker.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("QA tracker API starting up")

    tracker = await get_tracker()
    created = await tracker.settings.ensure_defaults()
    if created:
        logger.info("Default settings seeded", keys=created)

    yield

    logger.info("QA tracker API shutting down")
    await cleanup_dependencies()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "evaluations", "description": "Scored interaction evaluations"},
        {"name": "disputes", "description": "Score disputes and their review"},
        {"name": "question-sets", "description": "Scoring templates and questions"},
        {"name": "statistics", "description": "Dashboard and trend reports"},
        {"name": "users", "description": "User provisioning"},
        {"name": "settings", "description": "System settings"},
        {"name": "audit-queue", "description": "Interactions waiting for evaluation"},
    ]

    app = FastAPI(
        title="QA Tracker API",
        description="Role-based quality assurance evaluations with score disputes.",
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Add CORS middleware (origins from CORS_ORIGINS env var, comma-separated)
    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Added before the logging middleware so the timeout wraps the whole request
    if settings.request_timeout_seconds > 0:
        app.add_middleware(
            TimeoutMiddleware,
            timeout_seconds=settings.request_timeout_seconds,
        )

    # Request logging and correlation ID middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )

        # Bind to structlog contextvars for automatic log correlation
        bind_context(
            request_id=request_id,
            user_id=request.headers.get("X-User-Id"),
        )

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            clear_context()

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(evaluations.router, tags=["evaluations"])
    app.include_router(disputes.router, tags=["disputes"])
    app.include_router(question_sets.router, tags=["question-sets"])
    app.include_router(statistics.router, tags=["statistics"])
    app.include_router(users.router, tags=["users"])
    app.include_router(settings_routes.router, tags=["settings"])
    app.include_router(audit_queue.router, tags=["audit-queue"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "QA Tracker API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app
