"""MissionStep model: one ordered unit of work within a mission."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from mission_control.db.base import Base, JSONType


class MissionStep(Base):
    __tablename__ = "mission_steps"
    __table_args__ = (
        Index("ix_mission_steps_status_reserved_at", "status", "reserved_at"),
    )

    # Autoincrement id doubles as the in-mission execution order
    id = Column(Integer, primary_key=True, autoincrement=True)
    mission_id = Column(Integer, ForeignKey("missions.id"), nullable=False, index=True)

    step_kind = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="queued")  # queued, running, succeeded, failed

    input = Column(JSONType, nullable=False, default=dict)
    output = Column(JSONType, nullable=True)
    last_error = Column(Text, nullable=True)

    # Claim bookkeeping: reserved_at is set iff status is running or later
    reserved_at = Column(DateTime(timezone=True), nullable=True)
    reserved_by = Column(String(255), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
