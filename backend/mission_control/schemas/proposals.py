"""Pydantic schemas for proposal requests and responses."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CreateProposalRequest(BaseModel):
    """Request body for submitting a new proposal."""

    agent_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    step_kinds: list[str]
    metadata: dict[str, Any] | None = None


class RejectProposalRequest(BaseModel):
    """Request body for rejecting a proposal. Blank reasons are rejected by the service."""

    reason: str = ""


class ProposalResponse(BaseModel):
    """A proposal as stored."""

    id: int
    agent_id: str
    title: str
    description: str
    step_kinds: list[str]
    status: str
    rejection_reason: str | None = None
    decided_at: datetime | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
