"""Policy model: keyed JSON configuration consulted by agents and workers."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String

from mission_control.db.base import Base, JSONType


class Policy(Base):
    __tablename__ = "policies"

    key = Column(String(255), primary_key=True)
    value = Column(JSONType, nullable=False, default=dict)

    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))
