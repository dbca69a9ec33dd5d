"""Mission model: the executable unit created from an approved proposal."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from mission_control.db.base import Base


class Mission(Base):
    __tablename__ = "missions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id"), nullable=False, unique=True)

    status = Column(String(50), nullable=False, default="pending", index=True)  # MissionStatus values

    started_at = Column(DateTime(timezone=True), nullable=True)  # set on first step claim
    finished_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
