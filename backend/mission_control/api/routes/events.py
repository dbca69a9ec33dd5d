"""Event feed API routes."""

from fastapi import APIRouter, Query

from mission_control.db.base import get_session_factory
from mission_control.schemas.events import EventListResponse
from mission_control.services.event_log import EventLog

router = APIRouter()


@router.get("", response_model=EventListResponse)
async def list_events(
    limit: int = Query(100, ge=1, le=500),
    event_type: str | None = None,
    tag: str | None = None,
):
    """Newest-first event feed, optionally filtered by event type or tag."""
    events = await EventLog(get_session_factory()).list_events(limit=limit, event_type=event_type, tag=tag)
    return EventListResponse(events=events)
