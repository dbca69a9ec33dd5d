"""Worker heartbeat registry backed by Redis hashes."""

from datetime import UTC, datetime

from redis.asyncio import Redis

from mission_control.schemas.dashboard import WorkerStatusResponse

WORKERS_KEY = "workers"


def _worker_key(worker_name: str) -> str:
    return f"worker:{worker_name}"


class WorkerRegistry:
    """Records the last heartbeat of every worker process.

    Each worker owns the hash ``worker:{name}``; names are indexed in the
    ``workers`` set so the dashboard can list them. Workers that stop
    reporting are flagged stale rather than removed.
    """

    def __init__(self, redis: Redis, heartbeat_interval: float = 30.0):
        self.redis = redis
        self.heartbeat_interval = heartbeat_interval

    async def heartbeat(
        self,
        worker_name: str,
        jobs_processed: int = 0,
        error_count: int = 0,
        circuit_breaker_open: bool = False,
        now: datetime | None = None,
    ) -> None:
        """Report that ``worker_name`` is alive.

        Args:
            worker_name: Stable worker identity
            jobs_processed: Steps processed since the worker started
            error_count: Consecutive handler errors
            circuit_breaker_open: True when the worker stopped claiming
            now: Current time (for deterministic testing)
        """
        now = now or datetime.now(UTC)

        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hset(
                _worker_key(worker_name),
                mapping={
                    "status": "crashed" if circuit_breaker_open else "running",
                    "last_heartbeat": now.isoformat(),
                    "jobs_processed": jobs_processed,
                    "error_count": error_count,
                    "circuit_breaker_open": "true" if circuit_breaker_open else "false",
                },
            )
            pipe.sadd(WORKERS_KEY, worker_name)
            await pipe.execute()

    async def mark_stopped(self, worker_name: str, now: datetime | None = None) -> None:
        """Record a graceful shutdown."""
        now = now or datetime.now(UTC)
        await self.redis.hset(
            _worker_key(worker_name),
            mapping={"status": "stopped", "last_heartbeat": now.isoformat()},
        )
        await self.redis.sadd(WORKERS_KEY, worker_name)

    async def list_workers(self, now: datetime | None = None) -> list[WorkerStatusResponse]:
        """Return every known worker, sorted by name.

        A running worker whose last heartbeat is older than three intervals
        is reported as ``stale``.
        """
        now = now or datetime.now(UTC)
        stale_after = self.heartbeat_interval * 3

        workers = []
        for name in sorted(await self.redis.smembers(WORKERS_KEY)):
            data = await self.redis.hgetall(_worker_key(name))
            if not data:
                continue

            status = data.get("status", "running")
            last_heartbeat = data.get("last_heartbeat")
            if status == "running" and last_heartbeat:
                age = (now - datetime.fromisoformat(last_heartbeat)).total_seconds()
                if age > stale_after:
                    status = "stale"

            workers.append(
                WorkerStatusResponse(
                    worker_name=name,
                    status=status,
                    last_heartbeat=last_heartbeat,
                    jobs_processed=int(data.get("jobs_processed", 0)),
                    error_count=int(data.get("error_count", 0)),
                    circuit_breaker_open=data.get("circuit_breaker_open") == "true",
                )
            )
        return workers
