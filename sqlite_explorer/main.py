"""SQLite Explorer API - FastAPI application."""

import logging
import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlite_explorer.config import Settings, settings
from sqlite_explorer.dependencies import AppContext
from sqlite_explorer.errors import ExplorerError
from sqlite_explorer.metrics import ERROR_COUNT
from sqlite_explorer.middleware.metrics import MetricsMiddleware, normalize_path
from sqlite_explorer.routers import backend, databases, metrics, preferences, query


def setup_logging(debug: bool) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the application context on startup, release it on shutdown."""
    logger = structlog.get_logger()
    app_settings: Settings = app.state.settings
    logger.info(
        "application_startup",
        version=app_settings.api_version,
        debug=app_settings.debug,
        data_dir=str(app_settings.data_dir),
    )

    context = AppContext.create(app_settings)
    try:
        context.initialize()
    except Exception as e:
        logger.error("control_db_init_failed", error=str(e), exc_info=True)
        raise
    app.state.context = context

    yield

    context.shutdown()
    logger.info("application_shutdown")


def _record_error(request: Request, exc: Exception) -> None:
    ERROR_COUNT.labels(
        type=type(exc).__name__,
        endpoint=normalize_path(request.url.path),
    ).inc()


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the application; tests pass their own Settings."""
    app_settings = app_settings or settings
    setup_logging(app_settings.debug)
    logger = structlog.get_logger()

    app = FastAPI(
        title=app_settings.api_title,
        version=app_settings.api_version,
        description="""
SQLite Explorer API.

Upload SQLite database files, browse their tables and schemas and run SQL
against them:
- Data file upload, catalog and favorites
- Interactive queries against the open database
- Query history, analytics and saved queries
- User preferences
        """,
        lifespan=lifespan,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
    )
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add metrics middleware (for Prometheus request instrumentation)
    app.add_middleware(MetricsMiddleware)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Log all requests with timing and request ID."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ExplorerError)
    async def explorer_error_handler(request: Request, exc: ExplorerError):
        """Map typed errors to their status and error body."""
        _record_error(request, exc)
        logger.warning(
            "request_failed",
            method=request.method,
            path=request.url.path,
            error=exc.error,
            message=exc.message,
            details=exc.details,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Flatten ``detail={error, message, details}`` into the error body."""
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            content = {
                "error": exc.detail["error"],
                "message": exc.detail.get("message", ""),
                "details": exc.detail.get("details"),
            }
        else:
            content = {"error": "http_error", "message": str(exc.detail), "details": None}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        _record_error(request, exc)
        logger.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": str(exc) if app_settings.debug else "An internal error occurred",
                "details": None,
            },
        )

    app.include_router(backend.router)
    app.include_router(databases.router)
    app.include_router(query.router)
    app.include_router(preferences.router)
    app.include_router(metrics.router)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": app_settings.api_title,
            "version": app_settings.api_version,
            "health": "/health",
            "docs": "/docs" if app_settings.debug else None,
        }

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "sqlite_explorer.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
