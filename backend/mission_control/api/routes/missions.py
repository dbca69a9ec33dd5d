"""Mission API routes."""

from fastapi import APIRouter, Query

from mission_control.db.base import get_session_factory
from mission_control.schemas.missions import MissionResponse, MissionWithProposalResponse, StepResponse
from mission_control.services.mission_service import MissionService

router = APIRouter()


@router.get("", response_model=list[MissionWithProposalResponse])
async def list_missions(
    status: str | None = None,
    limit: int = Query(50, ge=1, le=500),
):
    """List missions newest first, each with its proposal."""
    return await MissionService(get_session_factory()).list_missions(status=status, limit=limit)


@router.get("/{mission_id}", response_model=MissionWithProposalResponse)
async def get_mission(mission_id: int):
    return await MissionService(get_session_factory()).get_mission(mission_id)


@router.get("/{mission_id}/steps", response_model=list[StepResponse])
async def list_mission_steps(mission_id: int):
    """List a mission's steps in execution order."""
    return await MissionService(get_session_factory()).list_steps(mission_id)


@router.post("/{mission_id}/cancel", response_model=MissionResponse)
async def cancel_mission(mission_id: int):
    """Cancel a pending or running mission. Running steps are not preempted.

    Raises:
        NotFoundError(404): mission does not exist
        InvalidStateError(409): mission already terminal
    """
    return await MissionService(get_session_factory()).cancel_mission(mission_id)
