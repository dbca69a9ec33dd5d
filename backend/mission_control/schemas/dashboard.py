"""Pydantic schemas for dashboard counts and worker status."""

from pydantic import BaseModel, Field


class CountsResponse(BaseModel):
    """Entity counts grouped by status. Every known status is present, zero-filled."""

    proposals: dict[str, int] = Field(default_factory=dict)
    missions: dict[str, int] = Field(default_factory=dict)
    steps: dict[str, int] = Field(default_factory=dict)
    events_today: int = 0


class WorkerStatusResponse(BaseModel):
    """Last heartbeat reported by a worker process."""

    worker_name: str
    status: str  # running, crashed, stopped, stale
    last_heartbeat: str | None = None
    jobs_processed: int = 0
    error_count: int = 0
    circuit_breaker_open: bool = False
