"""DashboardService: status counts for the overview screen."""

from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mission_control.core.exceptions import store_errors
from mission_control.db.models.event import Event
from mission_control.db.models.mission import Mission
from mission_control.db.models.mission_step import MissionStep
from mission_control.db.models.proposal import Proposal
from mission_control.domain.missions import MissionStatus, ProposalStatus, StepStatus
from mission_control.schemas.dashboard import CountsResponse
from mission_control.services.policy_service import start_of_day


class DashboardService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_counts(self, now: datetime | None = None) -> CountsResponse:
        """Count proposals, missions and steps per status, plus today's events."""
        since = start_of_day(now or datetime.now(UTC))

        async with self.session_factory() as session:
            with store_errors("get_counts"):
                proposals = await self._count_by_status(session, Proposal.status, ProposalStatus)
                missions = await self._count_by_status(session, Mission.status, MissionStatus)
                steps = await self._count_by_status(session, MissionStep.status, StepStatus)
                events_today = (
                    await session.execute(select(func.count(Event.id)).where(Event.created_at >= since))
                ).scalar_one()

        return CountsResponse(
            proposals=proposals,
            missions=missions,
            steps=steps,
            events_today=events_today,
        )

    async def _count_by_status(self, session: AsyncSession, column, statuses) -> dict[str, int]:
        counts = {s.value: 0 for s in statuses}
        result = await session.execute(select(column, func.count()).group_by(column))
        for status, count in result.all():
            counts[status] = count
        return counts
