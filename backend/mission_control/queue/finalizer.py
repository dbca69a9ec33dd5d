"""MissionFinalizer: derives mission status from its steps after each completion."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mission_control.core.exceptions import store_errors
from mission_control.db.models.mission import Mission
from mission_control.db.models.mission_step import MissionStep
from mission_control.domain.missions import ACTIVE_MISSION_STATUSES, MissionStatus, finalize_status
from mission_control.services.event_log import EventLog, EventType

logger = structlog.get_logger(__name__)

_OUTCOME_EVENTS = {
    MissionStatus.FAILED: (EventType.MISSION_FAILED, ["mission", "failure"]),
    MissionStatus.SUCCEEDED: (EventType.MISSION_SUCCEEDED, ["mission", "success"]),
}


class MissionFinalizer:
    """Promotes a mission to succeeded/failed once its steps allow it.

    Runs eagerly after every step completion, so no background sweep is
    needed. The status write only applies to pending/running missions:
    cancelled or already-finalized missions are left untouched and the
    outcome event is emitted exactly once.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], event_log: EventLog | None = None):
        self.session_factory = session_factory
        self.event_log = event_log or EventLog(session_factory)

    async def maybe_finalize_mission(self, step_id: int, now: datetime | None = None) -> MissionStatus | None:
        """Finalize the mission owning ``step_id`` if its steps are done.

        Args:
            step_id: Step that just completed
            now: Current time (for deterministic testing)

        Returns:
            The status the mission moved to, or None if nothing changed
        """
        now = now or datetime.now(UTC)

        async with self.session_factory() as session:
            with store_errors("maybe_finalize_mission"):
                mission_id = (
                    await session.execute(select(MissionStep.mission_id).where(MissionStep.id == step_id))
                ).scalar_one_or_none()
                if mission_id is None:
                    return None

                statuses = (
                    await session.execute(select(MissionStep.status).where(MissionStep.mission_id == mission_id))
                ).scalars().all()

                outcome = finalize_status(statuses)
                if outcome is None:
                    return None

                result = await session.execute(
                    update(Mission)
                    .where(
                        Mission.id == mission_id,
                        Mission.status.in_([s.value for s in ACTIVE_MISSION_STATUSES]),
                    )
                    .values(status=outcome.value, finished_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await session.rollback()
                    logger.info("mission_finalize_skipped", mission_id=mission_id, outcome=outcome.value)
                    return None
                await session.commit()

        logger.info("mission_finalized", mission_id=mission_id, status=outcome.value, trigger_step_id=step_id)

        event_type, tags = _OUTCOME_EVENTS[outcome]
        await self.event_log.log_event(
            agent_id="system",
            event_type=event_type,
            tags=tags,
            payload={"mission_id": mission_id},
        )
        return outcome
