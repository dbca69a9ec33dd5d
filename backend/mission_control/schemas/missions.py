"""Pydantic schemas for missions, steps and worker step claims."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mission_control.schemas.proposals import ProposalResponse


class MissionResponse(BaseModel):
    """A mission without its steps."""

    id: int
    proposal_id: int
    status: str
    started_at: datetime | None = None
    finished_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MissionWithProposalResponse(MissionResponse):
    """Mission joined with the proposal it was materialized from."""

    proposal: ProposalResponse | None = None


class StepResponse(BaseModel):
    """A mission step as stored."""

    id: int
    mission_id: int
    step_kind: str
    status: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] | None = None
    last_error: str | None = None
    reserved_at: datetime | None = None
    reserved_by: str | None = None
    finished_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PreviousStepOutput(BaseModel):
    """Output of an earlier succeeded step of the same mission."""

    step_kind: str
    output: Any = None


class StepInput(BaseModel):
    """Input handed to a worker for a claimed step.

    Unknown keys are preserved so step kinds can carry their own fields.
    """

    proposal: dict[str, Any] | None = None
    previous_steps: list[PreviousStepOutput] = Field(default_factory=list)
    outputs: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")


class ClaimedStep(BaseModel):
    """A step freshly claimed by a worker, with outputs of earlier steps chained in."""

    id: int
    mission_id: int
    step_kind: str
    status: str
    input: StepInput
    reserved_at: datetime
    reserved_by: str | None = None


class ClaimStepRequest(BaseModel):
    worker_id: str = Field(..., min_length=1)


class SucceedStepRequest(BaseModel):
    output: dict[str, Any] = Field(default_factory=dict)
    # When set, only the worker currently holding the lease may complete
    worker_id: str | None = None


class FailStepRequest(BaseModel):
    error: str = Field(..., min_length=1)
    worker_id: str | None = None


class RenewLeaseRequest(BaseModel):
    worker_id: str | None = None


class RequeueResponse(BaseModel):
    requeued_step_ids: list[int] = Field(default_factory=list)
