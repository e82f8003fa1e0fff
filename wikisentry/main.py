"""FastAPI application entry point for wikisentry."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from .config import settings
from .hooks import ErrorHooks
from .reporter import Reporter
from .receiver.endpoints import router as receiver_router

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Set log level
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(message)s",
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    app.state.reporter = Reporter(settings)
    app.state.hooks = ErrorHooks(app.state.reporter)
    app.state.hooks.install()

    logger.info(
        "starting_wikisentry",
        app_name=settings.app_name,
        capture_enabled=settings.capture_enabled,
        cache_dir=settings.cache_dir,
    )

    yield

    # Shutdown
    app.state.hooks.uninstall()
    logger.info("shutting_down_wikisentry")


# Create FastAPI application
app = FastAPI(
    title="wikisentry",
    description="Capture wiki and browser errors and forward them to Sentry",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.include_router(receiver_router, tags=["Error capture"])


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns basic health status and the size of the retry queue.
    """
    health_status = {
        "status": "healthy",
        "app": "wikisentry",
        "version": "1.0.0",
        "capture_enabled": settings.capture_enabled,
    }

    reporter = getattr(request.app.state, "reporter", None)
    if reporter is not None:
        health_status["capture_enabled"] = reporter.settings.capture_enabled
        health_status["pending_events"] = len(reporter.queue)

    return health_status


def main():
    """Run the application with uvicorn."""
    import uvicorn

    uvicorn.run(
        "wikisentry.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
