"""MissionService: mission reads and cancellation."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mission_control.core.exceptions import InvalidStateError, NotFoundError, store_errors
from mission_control.db.models.mission import Mission
from mission_control.db.models.mission_step import MissionStep
from mission_control.db.models.proposal import Proposal
from mission_control.domain.missions import ACTIVE_MISSION_STATUSES, MissionStatus
from mission_control.schemas.missions import MissionResponse, MissionWithProposalResponse, StepResponse
from mission_control.schemas.proposals import ProposalResponse
from mission_control.services.event_log import EventLog, EventType

logger = structlog.get_logger(__name__)


def _with_proposal(mission: Mission, proposal: Proposal | None) -> MissionWithProposalResponse:
    response = MissionWithProposalResponse.model_validate(mission)
    response.proposal = ProposalResponse.model_validate(proposal) if proposal is not None else None
    return response


class MissionService:
    """Service layer for mission queries and the cancel action."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], event_log: EventLog | None = None):
        self.session_factory = session_factory
        self.event_log = event_log or EventLog(session_factory)

    async def get_mission(self, mission_id: int) -> MissionWithProposalResponse:
        """Return a mission joined with its proposal.

        Raises:
            NotFoundError: mission does not exist
        """
        async with self.session_factory() as session:
            with store_errors("get_mission"):
                row = (
                    await session.execute(
                        select(Mission, Proposal)
                        .outerjoin(Proposal, Proposal.id == Mission.proposal_id)
                        .where(Mission.id == mission_id)
                    )
                ).first()
        if row is None:
            raise NotFoundError("Mission", mission_id)
        return _with_proposal(row[0], row[1])

    async def list_missions(self, status: str | None = None, limit: int = 50) -> list[MissionWithProposalResponse]:
        """Return missions newest first, each joined with its proposal."""
        async with self.session_factory() as session:
            with store_errors("list_missions"):
                query = (
                    select(Mission, Proposal)
                    .outerjoin(Proposal, Proposal.id == Mission.proposal_id)
                    .order_by(Mission.id.desc())
                    .limit(limit)
                )
                if status:
                    query = query.where(Mission.status == status)
                rows = (await session.execute(query)).all()
        return [_with_proposal(mission, proposal) for mission, proposal in rows]

    async def list_steps(self, mission_id: int) -> list[StepResponse]:
        """Return a mission's steps in execution order.

        Raises:
            NotFoundError: mission does not exist
        """
        async with self.session_factory() as session:
            with store_errors("list_steps"):
                mission = await session.get(Mission, mission_id)
                if mission is None:
                    raise NotFoundError("Mission", mission_id)
                result = await session.execute(
                    select(MissionStep).where(MissionStep.mission_id == mission_id).order_by(MissionStep.id.asc())
                )
                steps = result.scalars().all()
        return [StepResponse.model_validate(s) for s in steps]

    async def cancel_mission(self, mission_id: int, now: datetime | None = None) -> MissionResponse:
        """Cancel a pending or running mission.

        Queued steps of a cancelled mission are never claimed; a step already
        running is not preempted and may still complete.

        Raises:
            NotFoundError: mission does not exist
            InvalidStateError: mission already succeeded, failed or was cancelled
        """
        now = now or datetime.now(UTC)

        async with self.session_factory() as session:
            with store_errors("cancel_mission"):
                result = await session.execute(
                    update(Mission)
                    .where(
                        Mission.id == mission_id,
                        Mission.status.in_([s.value for s in ACTIVE_MISSION_STATUSES]),
                    )
                    .values(status=MissionStatus.CANCELLED.value, finished_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await session.rollback()
                    mission = await session.get(Mission, mission_id)
                    if mission is None:
                        raise NotFoundError("Mission", mission_id)
                    raise InvalidStateError("Mission", mission_id, mission.status, "pending or running")
                await session.commit()

                mission = (await session.execute(select(Mission).where(Mission.id == mission_id))).scalar_one()

        logger.info("mission_cancelled", mission_id=mission_id)

        await self.event_log.log_event(
            agent_id="system",
            event_type=EventType.MISSION_CANCELLED,
            tags=["mission"],
            payload={"mission_id": mission_id},
        )
        return MissionResponse.model_validate(mission)
