"""Liveness and readiness probes."""

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from mission_control.db.base import ping_db
from mission_control.db.redis import get_redis

logger = structlog.get_logger(__name__)

router = APIRouter()

SERVICE_NAME = "mission-control"


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe. 503 once SIGTERM was received so the balancer drains us."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(status_code=503, content={"status": "shutting_down", "service": SERVICE_NAME})
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check(redis=Depends(get_redis)):
    """Readiness probe: the store is required, Redis only feeds the worker dashboard."""
    checks = {"database": False, "redis": False}

    try:
        await ping_db()
        checks["database"] = True
    except Exception as exc:
        logger.error("database_health_check_failed", error=str(exc))

    try:
        await redis.ping()
        checks["redis"] = True
    except Exception as exc:
        logger.warning("redis_health_check_failed", error=str(exc))

    ready = checks["database"]
    status = "ready" if all(checks.values()) else ("degraded" if ready else "unavailable")
    return JSONResponse(status_code=200 if ready else 503, content={"status": status, "checks": checks})
