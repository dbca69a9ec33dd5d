"""Event model: append-only audit records."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, String

from mission_control.db.base import Base, JSONType


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(String(255), nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    tags = Column(JSONType, nullable=False, default=list)
    payload = Column(JSONType, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), index=True)
    # NO updated_at -- events are immutable (append-only)
