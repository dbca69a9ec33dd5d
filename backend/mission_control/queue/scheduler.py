"""StepScheduler: claims eligible mission steps and records their completion.

Mutual exclusion between workers lives entirely in the store. A claim is one
conditional UPDATE keyed on the step still being queued; the affected-row
count is the only signal of success. Losing a race returns None and is not
an error: the caller polls again later.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mission_control.core.config import get_settings
from mission_control.core.exceptions import InvalidStateError, NotFoundError, store_errors
from mission_control.db.models.mission import Mission
from mission_control.db.models.mission_step import MissionStep
from mission_control.domain.missions import (
    ACTIVE_MISSION_STATUSES,
    MissionStatus,
    PriorOutput,
    StepStatus,
    enrich_input,
    is_step_eligible,
)
from mission_control.queue.finalizer import MissionFinalizer
from mission_control.schemas.missions import ClaimedStep, StepInput
from mission_control.services.event_log import EventLog, EventType

logger = structlog.get_logger(__name__)

_ACTIVE_MISSIONS = [s.value for s in ACTIVE_MISSION_STATUSES]


class StepScheduler:
    """Work queue over mission steps with strict in-mission ordering."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_log: EventLog | None = None,
        finalizer: MissionFinalizer | None = None,
        claim_window: int | None = None,
        lease_seconds: int | None = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.event_log = event_log or EventLog(session_factory)
        self.finalizer = finalizer or MissionFinalizer(session_factory, self.event_log)
        self.claim_window = claim_window if claim_window is not None else settings.claim_window
        self.lease_seconds = lease_seconds if lease_seconds is not None else settings.step_lease_seconds

    async def claim_next_step(self, worker_id: str, now: datetime | None = None) -> ClaimedStep | None:
        """Claim the oldest eligible queued step for ``worker_id``.

        Steps:
        1. Scan a window of queued, unreserved steps of active missions by ascending id
        2. Pick the first whose earlier mission siblings are all terminal
        3. Conditionally flip it queued -> running (mission must still be active)
        4. Mark the mission running on its first claim
        5. Chain outputs of the mission's succeeded steps into the input

        Args:
            worker_id: Identity of the claiming worker
            now: Current time (for deterministic testing)

        Returns:
            The claimed step with enriched input, or None when no step is
            eligible or another worker won the claim.
        """
        now = now or datetime.now(UTC)

        async with self.session_factory() as session:
            with store_errors("claim_next_step"):
                candidate = await self._find_eligible_candidate(session)
                # End the read transaction before the write
                await session.commit()
                if candidate is None:
                    return None

                step_id, mission_id = candidate
                claimed = await self._try_claim(session, step_id, mission_id, worker_id, now)
                if not claimed:
                    await session.rollback()
                    logger.debug("step_claim_lost", step_id=step_id, worker_id=worker_id)
                    return None

                await session.execute(
                    update(Mission)
                    .where(Mission.id == mission_id, Mission.status == MissionStatus.PENDING.value)
                    .values(status=MissionStatus.RUNNING.value, started_at=now)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

                step = (await session.execute(select(MissionStep).where(MissionStep.id == step_id))).scalar_one()
                prior = await self._succeeded_outputs(session, mission_id)

        logger.info(
            "step_claimed",
            step_id=step_id,
            mission_id=mission_id,
            step_kind=step.step_kind,
            worker_id=worker_id,
            prior_outputs=len(prior),
        )

        return ClaimedStep(
            id=step.id,
            mission_id=step.mission_id,
            step_kind=step.step_kind,
            status=step.status,
            input=StepInput.model_validate(enrich_input(step.input, prior)),
            reserved_at=step.reserved_at,
            reserved_by=step.reserved_by,
        )

    async def mark_step_succeeded(
        self,
        step_id: int,
        output: dict[str, Any] | None = None,
        worker_id: str | None = None,
    ) -> None:
        """Record a running step's output and finalize its mission if done.

        With ``worker_id`` the write only applies while that worker still holds
        the reservation, so a worker whose lease expired cannot complete a step
        that was requeued and claimed by someone else.

        Raises:
            NotFoundError: step does not exist
            InvalidStateError: step is not running (already terminal or never
                claimed) or is reserved by another worker
        """
        await self._complete(
            step_id,
            StepStatus.SUCCEEDED,
            worker_id,
            output=output if output is not None else {},
        )
        logger.info("step_succeeded", step_id=step_id)
        await self.finalizer.maybe_finalize_mission(step_id)

    async def mark_step_failed(self, step_id: int, error_message: str, worker_id: str | None = None) -> None:
        """Record a running step's failure; the owning mission fails with it.

        ``worker_id`` guards ownership as in ``mark_step_succeeded``.

        Raises:
            NotFoundError: step does not exist
            InvalidStateError: step is not running or is reserved by another worker
        """
        mission_id = await self._complete(step_id, StepStatus.FAILED, worker_id, last_error=error_message)
        logger.warning("step_failed", step_id=step_id, mission_id=mission_id, error=error_message)

        await self.event_log.log_event(
            agent_id="system",
            event_type=EventType.STEP_FAILED,
            tags=["mission", "failure"],
            payload={"step_id": step_id, "mission_id": mission_id, "error": error_message},
        )
        await self.finalizer.maybe_finalize_mission(step_id)

    async def renew_lease(self, step_id: int, now: datetime | None = None, worker_id: str | None = None) -> None:
        """Refresh the reservation timestamp of a running step.

        With ``worker_id`` only the current holder may renew.

        Raises:
            NotFoundError: step does not exist
            InvalidStateError: step is not running or is reserved by another worker
        """
        now = now or datetime.now(UTC)

        async with self.session_factory() as session:
            with store_errors("renew_lease"):
                result = await session.execute(
                    update(MissionStep)
                    .where(*self._held_by(step_id, worker_id))
                    .values(reserved_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await self._raise_not_held(session, step_id, worker_id)
                await session.commit()

    async def requeue_expired_steps(self, lease_seconds: int | None = None, now: datetime | None = None) -> list[int]:
        """Return running steps whose lease expired to the queue.

        A worker that crashed mid-step leaves it running forever; this sweep
        clears the reservation so another worker can claim it. Each reset is
        conditional on the step still being running with the stale timestamp,
        so a lease renewed or completed in the meantime is left alone.

        Returns:
            Ids of the requeued steps (empty when the lease is disabled)
        """
        lease = self.lease_seconds if lease_seconds is None else lease_seconds
        if lease <= 0:
            return []

        now = now or datetime.now(UTC)
        cutoff = now - timedelta(seconds=lease)
        requeued: list[int] = []

        async with self.session_factory() as session:
            with store_errors("requeue_expired_steps"):
                stale = (
                    await session.execute(
                        select(MissionStep.id, MissionStep.mission_id, MissionStep.reserved_by)
                        .where(
                            MissionStep.status == StepStatus.RUNNING.value,
                            MissionStep.reserved_at < cutoff,
                        )
                        .order_by(MissionStep.id.asc())
                    )
                ).all()
                await session.commit()

                expired = []
                for row in stale:
                    result = await session.execute(
                        update(MissionStep)
                        .where(
                            MissionStep.id == row.id,
                            MissionStep.status == StepStatus.RUNNING.value,
                            MissionStep.reserved_at < cutoff,
                        )
                        .values(status=StepStatus.QUEUED.value, reserved_at=None, reserved_by=None)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        requeued.append(row.id)
                        expired.append(row)
                await session.commit()

        for row in expired:
            logger.warning("step_lease_expired", step_id=row.id, mission_id=row.mission_id, worker_id=row.reserved_by)
            await self.event_log.log_event(
                agent_id="system",
                event_type=EventType.STEP_REQUEUED,
                tags=["mission", "step"],
                payload={"step_id": row.id, "mission_id": row.mission_id, "worker_id": row.reserved_by},
            )
        return requeued

    async def _find_eligible_candidate(self, session: AsyncSession) -> tuple[int, int] | None:
        """Return (step_id, mission_id) of the first eligible queued step, if any."""
        window = (
            await session.execute(
                select(MissionStep.id, MissionStep.mission_id)
                .join(Mission, Mission.id == MissionStep.mission_id)
                .where(
                    MissionStep.status == StepStatus.QUEUED.value,
                    MissionStep.reserved_at.is_(None),
                    Mission.status.in_(_ACTIVE_MISSIONS),
                )
                .order_by(MissionStep.id.asc())
                .limit(self.claim_window)
            )
        ).all()

        siblings: dict[int, list[tuple[int, str]]] = {}
        for step_id, mission_id in window:
            if mission_id not in siblings:
                rows = await session.execute(
                    select(MissionStep.id, MissionStep.status)
                    .where(MissionStep.mission_id == mission_id)
                    .order_by(MissionStep.id.asc())
                )
                siblings[mission_id] = [(r.id, r.status) for r in rows]
            if is_step_eligible(step_id, siblings[mission_id]):
                return step_id, mission_id
        return None

    async def _try_claim(
        self,
        session: AsyncSession,
        step_id: int,
        mission_id: int,
        worker_id: str,
        now: datetime,
    ) -> bool:
        """Compare-and-swap queued -> running. True iff this call won the step."""
        active_mission = select(Mission.id).where(Mission.id == mission_id, Mission.status.in_(_ACTIVE_MISSIONS))
        result = await session.execute(
            update(MissionStep)
            .where(
                MissionStep.id == step_id,
                MissionStep.status == StepStatus.QUEUED.value,
                MissionStep.mission_id.in_(active_mission),
            )
            .values(status=StepStatus.RUNNING.value, reserved_at=now, reserved_by=worker_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _succeeded_outputs(self, session: AsyncSession, mission_id: int) -> list[PriorOutput]:
        rows = await session.execute(
            select(MissionStep.step_kind, MissionStep.output)
            .where(MissionStep.mission_id == mission_id, MissionStep.status == StepStatus.SUCCEEDED.value)
            .order_by(MissionStep.id.asc())
        )
        return [PriorOutput(step_kind=r.step_kind, output=r.output) for r in rows]

    async def _complete(
        self, step_id: int, status: StepStatus, worker_id: str | None = None, **values
    ) -> int:
        """Move a running step to a terminal status. Returns its mission id."""
        async with self.session_factory() as session:
            with store_errors("complete_step"):
                result = await session.execute(
                    update(MissionStep)
                    .where(*self._held_by(step_id, worker_id))
                    .values(status=status.value, finished_at=datetime.now(UTC), **values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await self._raise_not_held(session, step_id, worker_id)

                mission_id = (
                    await session.execute(select(MissionStep.mission_id).where(MissionStep.id == step_id))
                ).scalar_one()
                await session.commit()
        return mission_id

    @staticmethod
    def _held_by(step_id: int, worker_id: str | None) -> list:
        """WHERE terms matching a running step, optionally only under ``worker_id``'s lease."""
        conditions = [MissionStep.id == step_id, MissionStep.status == StepStatus.RUNNING.value]
        if worker_id is not None:
            conditions.append(MissionStep.reserved_by == worker_id)
        return conditions

    async def _raise_not_held(self, session: AsyncSession, step_id: int, worker_id: str | None = None) -> None:
        await session.rollback()
        row = (
            await session.execute(
                select(MissionStep.status, MissionStep.reserved_by).where(MissionStep.id == step_id)
            )
        ).one_or_none()
        if row is None:
            raise NotFoundError("Step", step_id)
        if row.status != StepStatus.RUNNING.value:
            raise InvalidStateError("Step", step_id, row.status, StepStatus.RUNNING.value)
        # Lease was requeued and picked up by someone else
        raise InvalidStateError("Step", step_id, f"reserved by {row.reserved_by}", f"reserved by {worker_id}")
