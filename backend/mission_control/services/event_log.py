"""EventLog: best-effort append-only audit trail."""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mission_control.core.exceptions import store_errors
from mission_control.db.base import has_tag
from mission_control.db.models.event import Event
from mission_control.schemas.events import EventResponse

logger = structlog.get_logger(__name__)


class EventType:
    """Event type constants written by the core."""

    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_APPROVED = "proposal_approved"
    PROPOSAL_REJECTED = "proposal_rejected"
    STEP_FAILED = "step_failed"
    STEP_REQUEUED = "step_requeued"
    MISSION_SUCCEEDED = "mission_succeeded"
    MISSION_FAILED = "mission_failed"
    MISSION_CANCELLED = "mission_cancelled"


class EventLog:
    """Appends events in their own session.

    Events are diagnostic, not authoritative state: a failed append is logged
    and swallowed so the triggering operation still completes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def log_event(
        self,
        agent_id: str,
        event_type: str,
        tags: list[str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Append one event. Never raises."""
        try:
            async with self.session_factory() as session:
                session.add(
                    Event(
                        agent_id=agent_id,
                        event_type=event_type,
                        tags=sorted(set(tags or [])),
                        payload=payload or {},
                    )
                )
                await session.commit()
        except Exception as exc:
            logger.warning(
                "event_log_failed",
                event_type=event_type,
                agent_id=agent_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def list_events(
        self,
        limit: int = 100,
        event_type: str | None = None,
        tag: str | None = None,
    ) -> list[EventResponse]:
        """Return the newest events first, optionally filtered by type or tag."""
        async with self.session_factory() as session:
            with store_errors("list_events"):
                query = select(Event).order_by(Event.created_at.desc(), Event.id.desc()).limit(limit)
                if event_type:
                    query = query.where(Event.event_type == event_type)
                if tag is not None:
                    query = query.where(has_tag(Event.tags, tag, session.get_bind().dialect.name))
                result = await session.execute(query)
                events = list(result.scalars().all())

        return [EventResponse.model_validate(e) for e in events]
