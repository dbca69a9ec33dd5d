"""Pydantic schemas for the event feed."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventResponse(BaseModel):
    """A single append-only event."""

    id: int
    agent_id: str
    event_type: str
    tags: list[str] = Field(default_factory=list)
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EventListResponse(BaseModel):
    """Newest-first event feed. events defaults to empty array, never null."""

    events: list[EventResponse] = Field(default_factory=list)
