"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fakeredis import FakeAsyncRedis
from fastapi import FastAPI
from fastapi.testclient import TestClient


@pytest.fixture
def api_client(db_url):
    """FastAPI test client backed by a throwaway SQLite database and fakeredis.

    Initializes the global database via init_db inside the TestClient's
    own event loop so route handlers can use get_session_factory().
    """
    from mission_control.api.routes import api_router
    from mission_control.core.config import get_settings
    from mission_control.db import close_db, init_db
    from mission_control.db.redis import get_redis
    from mission_control.db.seed import seed_policies
    from mission_control.api.errors import register_exception_handlers
    from mission_control.middleware.correlation import setup_correlation_middleware

    redis_holder = {}

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        """Test lifespan - initialize DB and fake Redis in TestClient's event loop."""
        # Reset global so init_db creates a fresh engine in THIS loop
        import mission_control.db.base as db_mod

        db_mod._engine = None
        db_mod._session_factory = None
        await init_db(db_url)
        await seed_policies()
        redis_holder["client"] = FakeAsyncRedis(decode_responses=True)
        yield
        await redis_holder["client"].aclose()
        await close_db()

    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Mission Control - Test Client",
        version="0.1.0",
        lifespan=test_lifespan,
    )

    setup_correlation_middleware(app)
    register_exception_handlers(app)
    app.dependency_overrides[get_redis] = lambda: redis_holder["client"]

    app.include_router(api_router, prefix="/api")

    with TestClient(app) as client:
        yield client
