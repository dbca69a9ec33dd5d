"""Mission Control API: FastAPI application entry point."""

import signal
from contextlib import asynccontextmanager

# configure_structlog must run before the package modules below create their loggers
from mission_control.core.logging import configure_structlog
from mission_control.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
    service="mission-control",
)

import structlog

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mission_control.api.errors import register_exception_handlers
from mission_control.api.routes import api_router
from mission_control.core.config import get_settings
from mission_control.db import init_db, close_db, init_redis, close_redis
from mission_control.db.seed import seed_policies
from mission_control.middleware.correlation import setup_correlation_middleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store and Redis, seed default policies; close both on shutdown."""
    # Flipped by SIGTERM so /health answers 503 while connections drain
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info(
        "startup_begin",
        app_name=settings.app_name,
        claim_window=settings.claim_window,
        step_lease_seconds=settings.step_lease_seconds,
    )

    await init_db()
    await init_redis()
    await seed_policies()
    logger.info("startup_complete", policies=sorted(settings.default_policies))

    yield

    logger.info("shutdown_begin")
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Proposals, missions and the ordered step work queue",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, *settings.cors_allowed_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it wraps CORS and runs first on incoming requests
    setup_correlation_middleware(app)

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mission_control.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
