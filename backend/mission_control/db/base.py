"""Declarative base, portable JSON column type, and the process-wide engine."""

from typing import Any

from sqlalchemy import JSON, func, select, text, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from mission_control.core.config import get_settings

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Seconds a SQLite writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 30


def has_tag(column, tag: str, dialect_name: str):
    """SQL condition: the JSON list in ``column`` contains ``tag`` exactly.

    Uses the JSONB ``@>`` operator on Postgres and a correlated
    ``json_each`` lookup elsewhere.
    """
    if dialect_name == "postgresql":
        return type_coerce(column, JSONB).contains([tag])
    elements = func.json_each(column).table_valued("value")
    return select(elements.c.value).where(elements.c.value == tag).exists()


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def engine_options(url: str, echo: bool = False) -> dict[str, Any]:
    """Engine keyword arguments for ``url``.

    Postgres pools are pre-pinged. SQLite gets a busy timeout so concurrent
    claimants queue on the write lock instead of erroring out.
    """
    if make_url(url).get_backend_name() == "sqlite":
        return {"echo": echo, "connect_args": {"timeout": SQLITE_BUSY_TIMEOUT}}
    return {"echo": echo, "pool_pre_ping": True}


async def init_db(url: str | None = None) -> None:
    """Create the engine and session factory, then create missing tables.

    No-op when already initialized.
    """
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    db_url = url or settings.database_url

    _engine = create_async_engine(db_url, **engine_options(db_url, echo=settings.debug))
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

    # Populate Base.metadata before create_all
    import mission_control.db.models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory every service is built with.

    Raises RuntimeError if init_db() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def ping_db() -> None:
    """Round-trip ``SELECT 1``; raises whatever the driver raises."""
    async with get_session_factory()() as session:
        await session.execute(text("SELECT 1"))
