"""Dashboard API routes: status counts and worker heartbeats."""

from fastapi import APIRouter, Depends

from mission_control.core.config import get_settings
from mission_control.db.base import get_session_factory
from mission_control.db.redis import get_redis
from mission_control.queue.heartbeat import WorkerRegistry
from mission_control.schemas.dashboard import CountsResponse, WorkerStatusResponse
from mission_control.services.dashboard_service import DashboardService

router = APIRouter()


@router.get("/metrics", response_model=CountsResponse)
async def get_metrics():
    """Proposal, mission and step counts per status plus today's event count."""
    return await DashboardService(get_session_factory()).get_counts()


@router.get("/workers", response_model=list[WorkerStatusResponse])
async def list_workers(redis=Depends(get_redis)):
    """Last heartbeat of every known worker; silent workers are flagged stale."""
    registry = WorkerRegistry(redis, heartbeat_interval=get_settings().worker_heartbeat_interval)
    return await registry.list_workers()
