"""FastAPI application entry point.

- Binds to HOST/PORT from the environment
- Health endpoints at /health, /health/db and /health/scheduler
- Registers the weekly collection job when the scheduler is enabled
- All logs to stdout

Error responses are structured: {"error": str, "code": str, "request_id": str}
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from rankwatch.api.v1 import router as api_v1_router
from rankwatch.core.auth import CRON_SECRET_HEADER
from rankwatch.core.config import get_settings
from rankwatch.core.database import db_manager
from rankwatch.core.logging import get_logger, setup_logging
from rankwatch.core.scheduler import WEEKLY_COLLECTION_JOB_ID, scheduler_manager
from rankwatch.integrations.dataforseo import close_dataforseo, init_dataforseo
from rankwatch.integrations.search_console import close_search_console, init_search_console
from rankwatch.integrations.telegram import close_telegram, init_telegram
from rankwatch.repositories.alert import AlertRepository
from rankwatch.repositories.keyword import KeywordRepository
from rankwatch.repositories.snapshot import SnapshotRepository
from rankwatch.repositories.tracked_url import TrackedUrlRepository
from rankwatch.services.collection import run_scheduled_collection

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with timing and a request id.

    The id is taken from X-Request-ID when the caller sends one and is
    echoed back on the response. The trigger secret is never logged, only
    whether it was present.
    """

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.monotonic()
        method = request.method
        path = request.url.path

        start_extra: dict[str, Any] = {"request_id": request_id, "method": method, "path": path}
        if request.query_params:
            start_extra["query_params"] = str(request.query_params)
        if CRON_SECRET_HEADER in request.headers:
            start_extra["cron_secret_present"] = True
        logger.info("Request started", extra=start_extra)

        response = await call_next(request)

        duration_ms = (time.monotonic() - start_time) * 1000
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id

        log_extra = {
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if status_code >= 500:
            logger.error("Request failed", extra=log_extra)
        elif status_code >= 400:
            logger.warning("Request error", extra=log_extra)
        else:
            logger.info("Request completed", extra=log_extra)

        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager for startup/shutdown.

    Handles:
    - Logging, database and external client initialization
    - Weekly collection job registration
    - Orderly shutdown
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    try:
        db_manager.init_db(settings)
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    serp_client = await init_dataforseo(settings)
    analytics_client = await init_search_console(settings)
    notifier = await init_telegram(settings)

    if scheduler_manager.init_scheduler(settings):
        scheduler_manager.add_cron_job(
            run_scheduled_collection,
            settings.collection_cron,
            id=WEEKLY_COLLECTION_JOB_ID,
            name="Weekly rank collection",
            args=(settings, serp_client, analytics_client, notifier),
        )
        if scheduler_manager.start():
            logger.info("Scheduler started")
        else:
            logger.warning("Failed to start scheduler")
    else:
        logger.info("Scheduler not initialized (disabled or error)")

    yield

    logger.info("Shutting down application")

    scheduler_manager.stop(wait=False)
    await close_telegram()
    await close_search_console()
    await close_dataforseo()
    await db_manager.close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle validation errors with structured response."""
        request_id = getattr(request.state, "request_id", "unknown")
        errors = exc.errors()
        error_msg = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in errors
        )
        logger.warning(
            "Validation error",
            extra={"request_id": request_id, "error_count": len(errors)},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": error_msg,
                "code": "VALIDATION_ERROR",
                "request_id": request_id,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected errors with structured response."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "Unhandled exception",
            extra={
                "request_id": request_id,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "An internal error occurred. Please try again later.",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            },
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Returns {"status": "ok"} if the service is running."""
        return {"status": "ok"}

    @app.get("/health/db", tags=["Health"])
    async def database_health() -> dict[str, Any]:
        """Check database connectivity and report table counts."""
        is_healthy = await db_manager.check_connection()
        if not is_healthy:
            return {"status": "error", "database": False}

        async with db_manager.session_scope() as session:
            counts = {
                "tracked_urls": await TrackedUrlRepository(session).count(),
                "tracked_keywords": await KeywordRepository(session).count_tracked(),
                "snapshots": await SnapshotRepository(session).count(),
                "open_alerts": await AlertRepository(session).count_open(),
            }
        return {"status": "ok", "database": True, "counts": counts}

    @app.get("/health/scheduler", tags=["Health"])
    async def scheduler_health() -> dict[str, Any]:
        """Check scheduler status."""
        return scheduler_manager.check_health()

    app.include_router(api_v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "rankwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
