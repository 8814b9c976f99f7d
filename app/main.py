"""Task Collaboration API - Main Application Module.

This module initializes the FastAPI application with its configuration,
middleware, routing and lifecycle management. The process-wide collaborators
(real-time bus, background dispatcher, blob storage, Clerk client and email
transport) are created once here and handed to request handlers through
``app.state``.
"""

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

# Add the project root to Python path if running directly
if __name__ == "__main__":
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import ConfigValidator, settings
from app.core.logging import setup_logging
from app.database import AsyncSessionLocal, engine
from app.services.background import BackgroundDispatcher
from app.services.clerk_client import ClerkClient
from app.services.email_service import email_service
from app.services.realtime import RealtimeBus
from app.services.storage_service import StorageService
from models import Base

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_TIMEOUT = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events."""
    logger.info("🚀 Starting Task Collaboration API...")

    try:
        ConfigValidator.validate_required_settings()
    except ValueError as e:
        if settings.is_production:
            raise
        logger.warning(str(e))

    # Development mode: auto-create tables if they don't exist
    if settings.is_development or settings.is_testing:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created/verified")

    yield

    logger.info("🛑 Shutting down Task Collaboration API...")
    await app.state.dispatcher.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
    await engine.dispose()
    logger.info("✅ Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="Task Collaboration API",
        description="Projects, tasks, approvals and real-time collaboration for organizations",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.state.bus = RealtimeBus()
    app.state.dispatcher = BackgroundDispatcher()
    app.state.storage = StorageService()
    app.state.clerk = ClerkClient()
    app.state.email = email_service

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def setup_exception_handlers(app: FastAPI):
    """Configure global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Handle custom exceptions that have structured detail
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            message = exc.detail["message"]
            error_code = exc.detail.get("error_code", "HTTP_ERROR")
            details = exc.detail.get("details")
        else:
            message = str(exc.detail) if exc.detail else "An error occurred"
            error_code = "HTTP_ERROR"
            details = None

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                "message": message,
                "error_code": error_code,
                "details": details,
                "timestamp": datetime.utcnow().isoformat(),
                "request_id": getattr(request.state, "request_id", None),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            error_dict = {
                "loc": error.get("loc", []),
                "msg": str(error.get("msg", "Validation error")),
                "type": error.get("type", "value_error"),
            }
            if "input" in error:
                error_dict["input"] = str(error["input"])
            errors.append(error_dict)

        return JSONResponse(
            status_code=422,
            content={
                "status": "error",
                "message": "Validation error",
                "error_code": "VALIDATION_ERROR",
                "details": errors,
                "timestamp": datetime.utcnow().isoformat(),
                "request_id": getattr(request.state, "request_id", None),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": "Internal server error",
                "error_code": "INTERNAL_ERROR",
                "details": None,
                "timestamp": datetime.utcnow().isoformat(),
                "request_id": getattr(request.state, "request_id", None),
            },
        )


def setup_routers(app: FastAPI):
    """Configure application routers."""
    from app.domains.activity.controller import router as activity_router
    from app.domains.admin.controller import router as admin_router
    from app.domains.notification.controller import router as notification_router
    from app.domains.project.controller import router as project_router
    from app.domains.realtime.controller import router as realtime_router
    from app.domains.task.controller import router as task_router
    from app.domains.user.controller import router as user_router
    from app.domains.webhook.controller import router as webhook_router

    @app.get("/health")
    async def health_check():
        """Health check with database connectivity and integration status."""
        db_status = "healthy"
        try:
            async with AsyncSessionLocal() as db:
                await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Health check database probe failed: {str(e)}")
            db_status = "unhealthy"

        return {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "version": settings.version,
            "environment": settings.environment,
            "timestamp": datetime.utcnow().isoformat(),
            "services": {
                "database": db_status,
                "realtime": app.state.bus.get_stats(),
                "background_jobs": app.state.dispatcher.pending,
                **ConfigValidator.get_feature_status(),
            },
        }

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Task Collaboration API",
            "version": settings.version,
            "docs_url": "/docs" if settings.is_development else None,
        }

    app.include_router(project_router)
    app.include_router(task_router)
    app.include_router(activity_router)
    app.include_router(notification_router)
    app.include_router(admin_router)
    app.include_router(user_router)
    app.include_router(webhook_router)
    app.include_router(realtime_router)


# Create the application instance
app = create_app()


def main():
    """Entry point for running the application directly."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
