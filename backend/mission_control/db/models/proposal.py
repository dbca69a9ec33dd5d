"""Proposal model: agent-submitted requests for work."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from mission_control.db.base import Base, JSONType


class Proposal(Base):
    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(String(255), nullable=False, index=True)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    step_kinds = Column(JSONType, nullable=False, default=list)  # ordered list of step kinds

    status = Column(String(50), nullable=False, default="pending", index=True)  # pending, accepted, rejected
    rejection_reason = Column(Text, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
