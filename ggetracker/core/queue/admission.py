"""
Admission Queue: in-process, strictly serial FIFO job runner

Purpose
-------
Serialize expensive per-request jobs (headless-browser rendering, live game
server calls) so that a scarce downstream resource only ever sees one job at
a time.

Responsibilities
----------------
- Accept jobs at the tail and return immediately
- Run exactly one drain loop per queue, one job at a time, head first
- Isolate handler failures: log them, finalize the job's context with a
  generic internal-error signal if the handler left it open, keep draining
- Expose running / pending / totals for the status endpoint

Non-Responsibilities
--------------------
- Priorities, cancellation, timeouts (a caller that goes away still owns
  its slot and its job runs to completion)
- Results: handlers signal completion through their context

Architecture Notes
------------------
- Single asyncio event loop; the drain loop is one task that exits, and
  clears its handle, in the same step that observes an empty queue, so an
  enqueue can never be stranded between two loops
- `ResultChannel` is the standard context: a future completed by `send`
  or `fail`; `run()` wraps a coroutine function into a channel-backed job
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Deque,
    Dict,
    Generic,
    Optional,
    Protocol,
    Tuple,
    Type,
    TypeVar,
)

from ggetracker.core.exceptions import AdmissionJobError
from ggetracker.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class JobState(Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobContext(Protocol):
    """Output channel a handler completes; the queue only needs to finalize it."""

    @property
    def finalized(self) -> bool: ...

    def fail(self, error: BaseException) -> None: ...


Handler = Callable[[Any], Awaitable[Any]]


@dataclass(slots=True, eq=False)
class AdmissionJob:
    job_id: int
    context: Any
    handler: Handler
    state: JobState = JobState.QUEUED
    enqueued_at: float = field(default_factory=time.monotonic)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    error: Optional[BaseException] = None


# ═══════════════════════════════════════════════════════════════════════
# RESULT CHANNEL
# ═══════════════════════════════════════════════════════════════════════


class ResultChannel(Generic[T]):
    """
    Future-backed job context.

    The first `send` or `fail` finalizes the channel; later calls are
    ignored. Waiting is shielded so a caller that stops waiting never
    cancels the underlying result.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        # A caller may have stopped waiting; its job's failure still counts as seen
        self._future.add_done_callback(_mark_retrieved)

    @property
    def finalized(self) -> bool:
        return self._future.done()

    def send(self, value: T) -> None:
        if not self._future.done():
            self._future.set_result(value)

    def fail(self, error: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(error)

    async def wait(self) -> T:
        return await asyncio.shield(self._future)


def _mark_retrieved(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


# ═══════════════════════════════════════════════════════════════════════
# ADMISSION QUEUE
# ═══════════════════════════════════════════════════════════════════════


class AdmissionQueue:
    """
    Strictly serial FIFO job runner.

    Example
    -------
    >>> queue = AdmissionQueue("render")
    >>> png = await queue.run(lambda: render(asset))
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._jobs: Deque[AdmissionJob] = deque()
        self._running = False
        self._drain_task: Optional[asyncio.Task[None]] = None
        self._ids = itertools.count(1)
        self._enqueued_total = 0
        self._completed_total = 0
        self._failed_total = 0

    @property
    def running(self) -> bool:
        """True while a handler is executing."""
        return self._running

    @property
    def pending(self) -> int:
        """Jobs waiting behind the running one."""
        return len(self._jobs)

    @property
    def idle(self) -> bool:
        return self._drain_task is None

    # ───────────────────────────────────────────────────────────────────
    # Submission
    # ───────────────────────────────────────────────────────────────────

    def enqueue(self, context: Any, handler: Handler) -> AdmissionJob:
        """
        Append a job and start draining if the queue is idle.

        Parameters
        ----------
        context : JobContext
            Channel the handler completes; finalized by the queue on failure
        handler : Handler
            Coroutine function called as `handler(context)`

        Returns
        -------
        AdmissionJob
            The queued job record (state is updated in place)
        """
        job = AdmissionJob(job_id=next(self._ids), context=context, handler=handler)
        self._jobs.append(job)
        self._enqueued_total += 1

        logger.debug(
            "Job enqueued",
            extra={"queue": self.name, "job_id": job.job_id, "pending": len(self._jobs)},
        )

        if self._drain_task is None:
            self._drain_task = asyncio.get_running_loop().create_task(
                self._drain(), name=f"admission-queue:{self.name}"
            )
        return job

    async def run(
        self,
        func: Callable[[], Awaitable[T]],
        passthrough: Tuple[Type[BaseException], ...] = (),
    ) -> T:
        """
        Run `func` as a queued job and wait for its result.

        Parameters
        ----------
        func : Callable
            Zero-argument coroutine function executed in the queue's slot
        passthrough : tuple
            Exception types delivered to the caller unchanged; the handler
            finalizes the channel with them before the queue sees the failure

        Raises
        ------
        AdmissionJobError
            If `func` raised anything outside `passthrough`; the original
            error is logged, not re-raised.
        """
        channel: ResultChannel[T] = ResultChannel()

        async def handler(ctx: ResultChannel[T]) -> None:
            try:
                value = await func()
            except passthrough as exc:
                ctx.fail(exc)
                raise
            ctx.send(value)

        self.enqueue(channel, handler)
        return await channel.wait()

    # ───────────────────────────────────────────────────────────────────
    # Draining
    # ───────────────────────────────────────────────────────────────────

    async def _drain(self) -> None:
        try:
            while self._jobs:
                job = self._jobs.popleft()
                try:
                    await self._execute(job)
                except Exception:
                    self._running = False
                    logger.exception(
                        "Admission job bookkeeping failed",
                        extra={"queue": self.name, "job_id": job.job_id},
                    )
        finally:
            self._drain_task = None

    async def _execute(self, job: AdmissionJob) -> None:
        job.state = JobState.RUNNING
        job.started_at = time.monotonic()
        self._running = True

        try:
            await job.handler(job.context)
        except Exception as exc:
            job.state = JobState.FAILED
            job.error = exc
            self._failed_total += 1

            logger.error(
                "Admission job failed",
                extra={
                    "queue": self.name,
                    "job_id": job.job_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
                exc_info=True,
            )

            self._fail_context(job, exc)
        else:
            job.state = JobState.COMPLETED
            self._completed_total += 1

            if self._context_finalized(job) is False:
                logger.warning(
                    "Admission job returned without finalizing its context",
                    extra={"queue": self.name, "job_id": job.job_id},
                )
        finally:
            job.finished_at = time.monotonic()
            self._running = False

        logger.debug(
            "Admission job settled",
            extra={
                "queue": self.name,
                "job_id": job.job_id,
                "state": job.state.value,
                "duration_ms": round((job.finished_at - job.started_at) * 1000, 2),
            },
        )

    def _context_finalized(self, job: AdmissionJob) -> Optional[bool]:
        """Finalized state of a channel-like context; None for opaque contexts."""
        try:
            finalized = getattr(job.context, "finalized", None)
        except Exception as exc:
            self._log_context_error(job, "finalized", exc)
            return None
        return None if finalized is None else bool(finalized)

    def _fail_context(self, job: AdmissionJob, exc: Exception) -> None:
        if self._context_finalized(job) is not False:
            return
        fail = getattr(job.context, "fail", None)
        if fail is None:
            return
        try:
            fail(AdmissionJobError(self.name, exc))
        except Exception as finalize_exc:
            self._log_context_error(job, "fail", finalize_exc)

    def _log_context_error(self, job: AdmissionJob, step: str, exc: Exception) -> None:
        logger.error(
            "Admission job context could not be finalized",
            extra={
                "queue": self.name,
                "job_id": job.job_id,
                "step": step,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    async def join(self) -> None:
        """Wait until every queued job has settled."""
        while self._drain_task is not None:
            await asyncio.shield(self._drain_task)

    # ───────────────────────────────────────────────────────────────────
    # Status
    # ───────────────────────────────────────────────────────────────────

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "running": self._running,
            "pending": len(self._jobs),
            "enqueued": self._enqueued_total,
            "completed": self._completed_total,
            "failed": self._failed_total,
        }
