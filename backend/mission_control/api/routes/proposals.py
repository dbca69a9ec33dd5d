"""Proposal API routes: listing, submission and the approve/reject decisions."""

from fastapi import APIRouter, Query

from mission_control.db.base import get_session_factory
from mission_control.schemas.missions import MissionResponse
from mission_control.schemas.proposals import (
    CreateProposalRequest,
    ProposalResponse,
    RejectProposalRequest,
)
from mission_control.services.proposal_service import ProposalService

router = APIRouter()


def _service() -> ProposalService:
    return ProposalService(get_session_factory())


@router.get("", response_model=list[ProposalResponse])
async def list_proposals(
    status: str | None = None,
    limit: int = Query(50, ge=1, le=500),
):
    """List proposals newest first, optionally filtered by status."""
    return await _service().list_proposals(status=status, limit=limit)


@router.get("/pending", response_model=list[ProposalResponse])
async def list_pending_proposals():
    """List pending proposals oldest first."""
    return await _service().list_pending_proposals()


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(proposal_id: int):
    return await _service().get_proposal(proposal_id)


@router.post("", response_model=ProposalResponse, status_code=201)
async def create_proposal(request: CreateProposalRequest):
    """Submit a proposal.

    Raises:
        ValidationError(422): empty or blank step_kinds
    """
    return await _service().create_proposal(
        agent_id=request.agent_id,
        title=request.title,
        description=request.description,
        step_kinds=request.step_kinds,
        metadata=request.metadata,
    )


@router.post("/{proposal_id}/approve", response_model=MissionResponse, status_code=201)
async def approve_proposal(proposal_id: int):
    """Approve a pending proposal, materializing its mission and steps.

    Raises:
        NotFoundError(404): proposal does not exist
        InvalidStateError(409): proposal already decided
    """
    return await _service().approve_proposal(proposal_id)


@router.post("/{proposal_id}/reject")
async def reject_proposal(proposal_id: int, request: RejectProposalRequest):
    """Reject a pending proposal.

    Raises:
        ValidationError(422): blank reason
        NotFoundError(404): proposal does not exist
        InvalidStateError(409): proposal already decided
    """
    await _service().reject_proposal(proposal_id, request.reason)
    return {"success": True}
