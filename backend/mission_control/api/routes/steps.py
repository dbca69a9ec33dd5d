"""Worker-facing step API: claim, complete, renew lease."""

from fastapi import APIRouter, Response

from mission_control.db.base import get_session_factory
from mission_control.queue.scheduler import StepScheduler
from mission_control.schemas.missions import (
    ClaimedStep,
    ClaimStepRequest,
    FailStepRequest,
    RenewLeaseRequest,
    RequeueResponse,
    SucceedStepRequest,
)

router = APIRouter()


def _scheduler() -> StepScheduler:
    return StepScheduler(get_session_factory())


@router.post(
    "/claim",
    response_model=ClaimedStep,
    responses={204: {"description": "No eligible step right now; poll again later"}},
)
async def claim_next_step(request: ClaimStepRequest):
    """Claim the next eligible step for a worker.

    Returns 204 when nothing is eligible or another worker won the claim.
    """
    step = await _scheduler().claim_next_step(request.worker_id)
    if step is None:
        return Response(status_code=204)
    return step


@router.post("/{step_id}/succeed")
async def mark_step_succeeded(step_id: int, request: SucceedStepRequest):
    """Record a running step's output.

    Raises:
        NotFoundError(404): step does not exist
        InvalidStateError(409): step is not running, or ``worker_id`` no longer holds it
    """
    await _scheduler().mark_step_succeeded(step_id, request.output, worker_id=request.worker_id)
    return {"success": True}


@router.post("/{step_id}/fail")
async def mark_step_failed(step_id: int, request: FailStepRequest):
    """Record a running step's failure. The owning mission fails with it.

    Raises:
        NotFoundError(404): step does not exist
        InvalidStateError(409): step is not running, or ``worker_id`` no longer holds it
    """
    await _scheduler().mark_step_failed(step_id, request.error, worker_id=request.worker_id)
    return {"success": True}


@router.post("/{step_id}/heartbeat")
async def renew_step_lease(step_id: int, request: RenewLeaseRequest | None = None):
    """Renew the lease of a running step. The body is optional."""
    worker_id = request.worker_id if request is not None else None
    await _scheduler().renew_lease(step_id, worker_id=worker_id)
    return {"success": True}


@router.post("/requeue-expired", response_model=RequeueResponse)
async def requeue_expired_steps():
    """Return running steps with expired leases to the queue."""
    requeued = await _scheduler().requeue_expired_steps()
    return RequeueResponse(requeued_step_ids=requeued)
