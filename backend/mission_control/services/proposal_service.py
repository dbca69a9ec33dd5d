"""ProposalService: proposal lifecycle and mission materialization.

Approval is the single state-creating transaction of the system: it flips the
proposal to accepted and creates the mission plus its ordered steps in one
commit. The pending -> decided flip is a conditional update, so a second or
concurrent decision on the same proposal finds zero rows and fails cleanly.
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mission_control.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
    store_errors,
)
from mission_control.db.models.mission import Mission
from mission_control.db.models.mission_step import MissionStep
from mission_control.db.models.proposal import Proposal
from mission_control.domain.missions import MissionStatus, ProposalStatus, StepStatus
from mission_control.schemas.missions import MissionResponse
from mission_control.schemas.proposals import ProposalResponse
from mission_control.services.event_log import EventLog, EventType

logger = structlog.get_logger(__name__)

# Agent recorded on approval/rejection events
DECIDER_AGENT_ID = "ceo"


class ProposalService:
    """Service layer for proposal operations.

    Every decision emits an event through the EventLog after its transaction
    commits.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], event_log: EventLog | None = None):
        """Initialize with dependency injection.

        Args:
            session_factory: SQLAlchemy async session factory
            event_log: EventLog to write to (defaults to one on the same factory)
        """
        self.session_factory = session_factory
        self.event_log = event_log or EventLog(session_factory)

    async def create_proposal(
        self,
        agent_id: str,
        title: str,
        description: str,
        step_kinds: list[str],
        metadata: dict[str, Any] | None = None,
    ) -> ProposalResponse:
        """Create a pending proposal.

        Raises:
            ValidationError: step_kinds is empty or holds a blank kind, or
                agent_id/title is blank
        """
        if not agent_id or not agent_id.strip():
            raise ValidationError("agent_id is required")
        if not title or not title.strip():
            raise ValidationError("title is required")
        if not step_kinds:
            raise ValidationError("step_kinds must contain at least one step kind")
        kinds = [k.strip() if isinstance(k, str) else "" for k in step_kinds]
        if any(not k for k in kinds):
            raise ValidationError("step_kinds must not contain blank step kinds")

        async with self.session_factory() as session:
            with store_errors("create_proposal"):
                proposal = Proposal(
                    agent_id=agent_id.strip(),
                    title=title.strip(),
                    description=description or "",
                    step_kinds=kinds,
                    status=ProposalStatus.PENDING.value,
                    metadata_=metadata or {},
                )
                session.add(proposal)
                await session.commit()

        response = ProposalResponse.model_validate(proposal)
        logger.info("proposal_created", proposal_id=response.id, agent_id=response.agent_id, steps=len(kinds))

        await self.event_log.log_event(
            agent_id=response.agent_id,
            event_type=EventType.PROPOSAL_CREATED,
            tags=["proposal"],
            payload={"proposal_id": response.id, "title": response.title},
        )
        return response

    async def approve_proposal(self, proposal_id: int) -> MissionResponse:
        """Accept a pending proposal and materialize its mission.

        Creates one queued step per step kind, in declared order, each with
        ``input = {"proposal": <proposal snapshot>}``.

        Raises:
            NotFoundError: proposal does not exist
            InvalidStateError: proposal is not pending (already decided)
        """
        async with self.session_factory() as session:
            with store_errors("approve_proposal"):
                now = datetime.now(UTC)
                await self._decide(
                    session,
                    proposal_id,
                    status=ProposalStatus.ACCEPTED,
                    decided_at=now,
                )

                result = await session.execute(select(Proposal).where(Proposal.id == proposal_id))
                proposal = result.scalar_one()
                snapshot = ProposalResponse.model_validate(proposal).model_dump(mode="json")

                mission = Mission(proposal_id=proposal.id, status=MissionStatus.PENDING.value)
                session.add(mission)
                await session.flush()

                session.add_all([
                    MissionStep(
                        mission_id=mission.id,
                        step_kind=step_kind,
                        status=StepStatus.QUEUED.value,
                        input={"proposal": snapshot},
                    )
                    for step_kind in proposal.step_kinds
                ])
                await session.commit()

        response = MissionResponse.model_validate(mission)
        logger.info(
            "proposal_approved",
            proposal_id=proposal_id,
            mission_id=response.id,
            steps=len(snapshot["step_kinds"]),
        )

        await self.event_log.log_event(
            agent_id=DECIDER_AGENT_ID,
            event_type=EventType.PROPOSAL_APPROVED,
            tags=["proposal", "mission"],
            payload={"proposal_id": proposal_id, "mission_id": response.id},
        )
        return response

    async def reject_proposal(self, proposal_id: int, reason: str) -> None:
        """Reject a pending proposal with a non-blank reason.

        Raises:
            ValidationError: reason is blank (proposal stays pending)
            NotFoundError: proposal does not exist
            InvalidStateError: proposal is not pending
        """
        if not reason or not reason.strip():
            raise ValidationError("reason is required to reject a proposal")

        async with self.session_factory() as session:
            with store_errors("reject_proposal"):
                await self._decide(
                    session,
                    proposal_id,
                    status=ProposalStatus.REJECTED,
                    decided_at=datetime.now(UTC),
                    rejection_reason=reason.strip(),
                )
                await session.commit()

        logger.info("proposal_rejected", proposal_id=proposal_id)

        await self.event_log.log_event(
            agent_id=DECIDER_AGENT_ID,
            event_type=EventType.PROPOSAL_REJECTED,
            tags=["proposal"],
            payload={"proposal_id": proposal_id, "reason": reason.strip()},
        )

    async def get_proposal(self, proposal_id: int) -> ProposalResponse:
        async with self.session_factory() as session:
            with store_errors("get_proposal"):
                proposal = await session.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        return ProposalResponse.model_validate(proposal)

    async def list_proposals(self, status: str | None = None, limit: int = 50) -> list[ProposalResponse]:
        """Return proposals newest first, optionally filtered by status."""
        async with self.session_factory() as session:
            with store_errors("list_proposals"):
                query = select(Proposal).order_by(Proposal.created_at.desc(), Proposal.id.desc()).limit(limit)
                if status:
                    query = query.where(Proposal.status == status)
                result = await session.execute(query)
                proposals = result.scalars().all()
        return [ProposalResponse.model_validate(p) for p in proposals]

    async def list_pending_proposals(self) -> list[ProposalResponse]:
        """Return pending proposals oldest first (decision order)."""
        async with self.session_factory() as session:
            with store_errors("list_pending_proposals"):
                result = await session.execute(
                    select(Proposal)
                    .where(Proposal.status == ProposalStatus.PENDING.value)
                    .order_by(Proposal.created_at.asc(), Proposal.id.asc())
                )
                proposals = result.scalars().all()
        return [ProposalResponse.model_validate(p) for p in proposals]

    async def _decide(self, session: AsyncSession, proposal_id: int, status: ProposalStatus, **values) -> None:
        """Flip a pending proposal to a decided status, or raise.

        The WHERE clause carries the pending check, so the check and the
        write are one statement.
        """
        result = await session.execute(
            update(Proposal)
            .where(Proposal.id == proposal_id, Proposal.status == ProposalStatus.PENDING.value)
            .values(status=status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        await session.rollback()
        proposal = await session.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        raise InvalidStateError("Proposal", proposal_id, proposal.status, ProposalStatus.PENDING.value)
