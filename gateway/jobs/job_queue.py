"""In-process asyncio job queues.

A job carries nothing but the ID of the row it concerns; handlers re-read the
row from the database on every run. Failed runs are retried with exponential
backoff until ``max_attempts`` is reached. Jobs for the same ID never run at
the same time within one queue.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set

from gateway.config import Settings

logger = logging.getLogger(__name__)

JobHandler = Callable[[str], Awaitable[object]]


class QueueClosedError(RuntimeError):
    pass


@dataclass
class Job:
    entity_id: str
    attempt: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class JobQueue:
    def __init__(self, name: str, max_attempts: int = 1, backoff_seconds: float = 0.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.name = name
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

        self._ready: "asyncio.Queue[Job]" = asyncio.Queue()
        self._timers: Set[asyncio.Task] = set()
        self._workers: List[asyncio.Task] = []
        self._entity_locks: Dict[str, asyncio.Lock] = {}
        self._entity_users: Dict[str, int] = {}
        self._outstanding = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self._stats = {"processing": 0, "completed": 0, "failed": 0, "retried": 0}

    # ---------- producers ----------

    async def enqueue(self, entity_id: str, delay: float = 0.0) -> Job:
        """Schedule one job for ``entity_id``, optionally ``delay`` seconds from now."""
        if self._closed:
            raise QueueClosedError(f"queue {self.name!r} is closed")
        job = Job(entity_id=str(entity_id))
        self._submit(job, delay)
        logger.debug(
            "Job enqueued",
            extra={"queue": self.name, "job_id": job.id, "entity_id": job.entity_id},
        )
        return job

    def _submit(self, job: Job, delay: float) -> None:
        self._outstanding += 1
        self._idle.clear()
        if delay <= 0:
            self._ready.put_nowait(job)
            return
        timer = asyncio.create_task(self._release_later(job, delay))
        self._timers.add(timer)
        timer.add_done_callback(self._timers.discard)

    async def _release_later(self, job: Job, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self._finish()
            raise
        self._ready.put_nowait(job)

    # ---------- consumers ----------

    def start(self, handler: JobHandler, concurrency: int = 1) -> None:
        if self._workers:
            raise RuntimeError(f"queue {self.name!r} already started")
        for index in range(max(1, concurrency)):
            task = asyncio.create_task(self._work(handler), name=f"{self.name}-worker-{index}")
            self._workers.append(task)
        logger.info("Queue %s started with %d worker(s)", self.name, len(self._workers))

    async def _work(self, handler: JobHandler) -> None:
        while True:
            job = await self._ready.get()
            try:
                await self._run(handler, job)
            finally:
                self._ready.task_done()

    async def _run(self, handler: JobHandler, job: Job) -> None:
        extra = {"queue": self.name, "job_id": job.id, "entity_id": job.entity_id, "attempt": job.attempt}
        async with self._entity_lock(job.entity_id):
            self._stats["processing"] += 1
            try:
                await handler(job.entity_id)
            except Exception:
                if job.attempt < self.max_attempts:
                    delay = self.backoff_seconds * 2 ** (job.attempt - 1)
                    logger.warning(
                        "Job failed, retrying in %.1fs", delay, exc_info=True, extra=extra
                    )
                    self._stats["retried"] += 1
                    self._submit(Job(entity_id=job.entity_id, attempt=job.attempt + 1, id=job.id), delay)
                else:
                    logger.exception("Job failed after %d attempt(s)", job.attempt, extra=extra)
                    self._stats["failed"] += 1
            else:
                self._stats["completed"] += 1
                logger.debug("Job completed", extra=extra)
            finally:
                self._stats["processing"] -= 1
                self._finish()

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str):
        lock = self._entity_locks.setdefault(entity_id, asyncio.Lock())
        self._entity_users[entity_id] = self._entity_users.get(entity_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._entity_users[entity_id] -= 1
            if not self._entity_users[entity_id]:
                del self._entity_users[entity_id]
                del self._entity_locks[entity_id]

    def _finish(self) -> None:
        self._outstanding -= 1
        if self._outstanding <= 0:
            self._outstanding = 0
            self._idle.set()

    # ---------- lifecycle ----------

    @property
    def idle(self) -> bool:
        return self._idle.is_set()

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until no job is ready, delayed or running."""
        await asyncio.wait_for(self._idle.wait(), timeout)

    async def close(self) -> None:
        self._closed = True
        tasks = list(self._timers) + self._workers
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers.clear()
        logger.info("Queue %s closed", self.name)

    def stats(self) -> dict:
        return {
            "pending": self._ready.qsize() + len(self._timers),
            "processing": self._stats["processing"],
            "completed": self._stats["completed"],
            "failed": self._stats["failed"],
        }


class JobQueues:
    """The three pipeline queues, constructed once per process."""

    def __init__(self, settlement: JobQueue, refunds: JobQueue, webhooks: JobQueue):
        self.settlement = settlement
        self.refunds = refunds
        self.webhooks = webhooks

    @classmethod
    def from_settings(cls, settings: Settings) -> "JobQueues":
        return cls(
            settlement=JobQueue("payments", settings.job_max_attempts, settings.job_backoff_seconds),
            refunds=JobQueue("refunds", settings.job_max_attempts, settings.job_backoff_seconds),
            # Webhook retries are scheduled by the delivery worker itself
            webhooks=JobQueue("webhooks", max_attempts=1),
        )

    def __iter__(self):
        return iter((self.settlement, self.refunds, self.webhooks))

    async def drain(self, timeout: Optional[float] = None) -> None:
        # A settled payment enqueues webhooks, so loop until all are idle together.
        async def _drain_all():
            while True:
                for queue in self:
                    await queue.drain()
                if all(queue.idle for queue in self):
                    return

        await asyncio.wait_for(_drain_all(), timeout)

    async def close(self) -> None:
        for queue in self:
            await queue.close()

    def stats(self) -> dict:
        return {queue.name: queue.stats() for queue in self}
