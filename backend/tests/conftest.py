"""Shared test fixtures for all test groups."""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mission_control.db.base import Base, engine_options
from mission_control.queue.finalizer import MissionFinalizer
from mission_control.queue.scheduler import StepScheduler
from mission_control.services.event_log import EventLog
from mission_control.services.mission_service import MissionService
from mission_control.services.proposal_service import ProposalService


@pytest.fixture
def db_url(tmp_path) -> str:
    """File-backed SQLite so concurrent sessions use separate connections."""
    return f"sqlite+aiosqlite:///{tmp_path / 'mission_control.db'}"


@pytest.fixture
async def engine(db_url) -> AsyncEngine:
    """Create the schema on a fresh SQLite database."""
    import mission_control.db.models  # noqa: F401

    engine = create_async_engine(db_url, **engine_options(db_url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def event_log(session_factory):
    return EventLog(session_factory)


@pytest.fixture
def finalizer(session_factory, event_log):
    return MissionFinalizer(session_factory, event_log)


@pytest.fixture
def scheduler(session_factory, event_log, finalizer):
    return StepScheduler(session_factory, event_log=event_log, finalizer=finalizer, claim_window=10, lease_seconds=900)


@pytest.fixture
def proposal_service(session_factory, event_log):
    return ProposalService(session_factory, event_log)


@pytest.fixture
def mission_service(session_factory, event_log):
    return MissionService(session_factory, event_log)


@pytest.fixture
def approve(proposal_service):
    """Create and approve a proposal, returning the mission."""

    async def _approve(step_kinds: list[str], agent_id: str = "analyst", title: str = "Quarterly review"):
        proposal = await proposal_service.create_proposal(
            agent_id=agent_id,
            title=title,
            description="Generated by test",
            step_kinds=step_kinds,
        )
        return await proposal_service.approve_proposal(proposal.id)

    return _approve
