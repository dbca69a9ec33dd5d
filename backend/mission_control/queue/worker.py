"""StepWorker: polls the scheduler, runs step handlers, reports completion."""

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from mission_control.core.config import get_settings
from mission_control.core.exceptions import MissionControlError, StoreError
from mission_control.middleware.correlation import step_correlation
from mission_control.queue.heartbeat import WorkerRegistry
from mission_control.queue.scheduler import StepScheduler
from mission_control.schemas.missions import ClaimedStep

logger = structlog.get_logger(__name__)

StepHandler = Callable[[ClaimedStep], Awaitable[dict[str, Any] | None]]


class StepWorker:
    """Executes claimed steps with handlers looked up by step kind.

    Handler lookup tries the full step kind first, then the part before the
    first ``:`` (``"writer:draft"`` falls back to ``"writer"``). A handler
    exception fails the step with the exception message. After
    ``max_errors`` consecutive handler errors the circuit breaker opens and
    the worker stops claiming until ``reset_errors()`` is called.
    """

    def __init__(
        self,
        scheduler: StepScheduler,
        handlers: Mapping[str, StepHandler],
        worker_name: str,
        registry: WorkerRegistry | None = None,
        max_errors: int | None = None,
        poll_interval: float | None = None,
        heartbeat_interval: float | None = None,
    ):
        settings = get_settings()
        self.scheduler = scheduler
        self.handlers = dict(handlers)
        self.worker_name = worker_name
        self.registry = registry
        self.max_errors = max_errors if max_errors is not None else settings.worker_max_errors
        self.poll_interval = poll_interval if poll_interval is not None else settings.worker_poll_interval
        self.heartbeat_interval = (
            heartbeat_interval if heartbeat_interval is not None else settings.worker_heartbeat_interval
        )

        self.jobs_processed = 0
        self.error_count = 0
        self.circuit_breaker_open = False

    def resolve_handler(self, step_kind: str) -> StepHandler | None:
        handler = self.handlers.get(step_kind)
        if handler is None and ":" in step_kind:
            handler = self.handlers.get(step_kind.split(":", 1)[0])
        return handler

    async def process_next_step(self) -> bool:
        """Claim and execute one step.

        Returns:
            True if a step was claimed (whatever its outcome), False if no
            work was available or the circuit breaker is open
        """
        if self.circuit_breaker_open:
            return False

        step = await self.scheduler.claim_next_step(self.worker_name)
        if step is None:
            return False

        handler = self.resolve_handler(step.step_kind)
        if handler is None:
            logger.warning("step_handler_missing", step_id=step.id, step_kind=step.step_kind)
            await self._report(
                self.scheduler.mark_step_failed,
                step.id,
                f"No handler registered for step kind '{step.step_kind}'",
            )
            return True

        try:
            output = await self._execute(handler, step)
        except Exception as exc:
            logger.error(
                "step_handler_failed",
                step_id=step.id,
                step_kind=step.step_kind,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            self._record_error()
            await self._report(self.scheduler.mark_step_failed, step.id, str(exc) or type(exc).__name__)
            return True

        if output is not None and not isinstance(output, dict):
            output = {"result": output}
        if await self._report(self.scheduler.mark_step_succeeded, step.id, output):
            self.jobs_processed += 1
        self.error_count = 0
        return True

    def reset_errors(self) -> None:
        """Clear the error count and close the circuit breaker."""
        if self.error_count or self.circuit_breaker_open:
            logger.info("worker_errors_reset", worker=self.worker_name, error_count=self.error_count)
        self.error_count = 0
        self.circuit_breaker_open = False

    async def send_heartbeat(self) -> None:
        if self.registry is None:
            return
        await self.registry.heartbeat(
            self.worker_name,
            jobs_processed=self.jobs_processed,
            error_count=self.error_count,
            circuit_breaker_open=self.circuit_breaker_open,
        )

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll for work until ``stop_event`` is set.

        Sleeps ``poll_interval`` when idle. Heartbeats and the expired-lease
        sweep run every ``heartbeat_interval`` seconds.
        """
        stop_event = stop_event or asyncio.Event()
        last_heartbeat: float | None = None
        logger.info("worker_started", worker=self.worker_name, handlers=sorted(self.handlers))

        try:
            while not stop_event.is_set():
                if last_heartbeat is None or time.monotonic() - last_heartbeat >= self.heartbeat_interval:
                    last_heartbeat = time.monotonic()
                    await self.send_heartbeat()
                    await self._sweep_expired_leases()

                try:
                    processed = await self.process_next_step()
                except StoreError as exc:
                    logger.error("worker_store_error", worker=self.worker_name, error=str(exc))
                    processed = False

                if processed:
                    continue
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
        finally:
            if self.registry is not None:
                await self.registry.mark_stopped(self.worker_name)
            logger.info("worker_stopped", worker=self.worker_name, jobs_processed=self.jobs_processed)

    async def _execute(self, handler: StepHandler, step: ClaimedStep) -> dict[str, Any] | None:
        """Run the handler while renewing the step lease in the background."""
        renewal = asyncio.create_task(self._keep_lease(step.id))
        try:
            with step_correlation(step.id):
                return await handler(step)
        finally:
            renewal.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await renewal

    async def _report(self, complete: Callable[..., Awaitable[None]], step_id: int, result: Any) -> bool:
        """Report a step outcome under this worker's lease.

        Returns False when the scheduler rejects it, e.g. because the lease
        expired and the step now belongs to another worker or was finished
        elsewhere. Store failures still propagate.
        """
        try:
            await complete(step_id, result, worker_id=self.worker_name)
        except StoreError:
            raise
        except MissionControlError as exc:
            logger.warning("step_completion_rejected", step_id=step_id, worker=self.worker_name, error=str(exc))
            return False
        return True

    async def _keep_lease(self, step_id: int) -> None:
        if self.scheduler.lease_seconds <= 0:
            return
        interval = self.scheduler.lease_seconds / 3
        while True:
            await asyncio.sleep(interval)
            try:
                await self.scheduler.renew_lease(step_id, worker_id=self.worker_name)
            except MissionControlError as exc:
                logger.warning("step_lease_renewal_failed", step_id=step_id, error=str(exc))
                return

    async def _sweep_expired_leases(self) -> None:
        try:
            requeued = await self.scheduler.requeue_expired_steps()
        except StoreError as exc:
            logger.error("lease_sweep_failed", worker=self.worker_name, error=str(exc))
            return
        if requeued:
            logger.info("lease_sweep_requeued", worker=self.worker_name, step_ids=requeued)

    def _record_error(self) -> None:
        self.error_count += 1
        if self.error_count >= self.max_errors and not self.circuit_breaker_open:
            self.circuit_breaker_open = True
            logger.error("worker_circuit_breaker_open", worker=self.worker_name, error_count=self.error_count)
