"""
Single-flight execution of cache refreshes.

Refreshes block on processes, HTTP and disk, and two refreshes racing on the
same cache directory would corrupt the markers. Each cache directory therefore
gets one ``RefreshQueue`` whose single worker runs queued jobs one at a time in
a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from catalog_cache.core.config import CacheConfig
from catalog_cache.domain.models import JobState, RefreshJob, SourceModes
from catalog_cache.services.dispatcher import check_cache

logger = logging.getLogger(__name__)

RefreshRunner = Callable[[SourceModes], None]
CompletionCallback = Callable[[RefreshJob], None]

DEFAULT_RETENTION = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshQueue:
    def __init__(
        self,
        runner: RefreshRunner,
        on_complete: Optional[CompletionCallback] = None,
        retention: int = DEFAULT_RETENTION,
    ):
        self.runner = runner
        self.on_complete = on_complete
        self.retention = retention
        self._jobs: Dict[str, RefreshJob] = {}
        self._events: Dict[str, asyncio.Event] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker on the running event loop."""
        if self.running:
            return
        self._queue = asyncio.Queue()
        for job in self._jobs.values():
            if job.state == JobState.QUEUED:
                self._queue.put_nowait(job.id)
        self._worker = asyncio.create_task(self._run())
        logger.info("Refresh queue started")

    async def stop(self) -> None:
        """
        Stop the worker. Jobs still queued are cancelled; a job already
        running is waited for.
        """
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        for job in list(self._jobs.values()):
            if job.state == JobState.QUEUED:
                job.state = JobState.CANCELLED
                self._finish(job)
        if self._current is not None:
            await self._current
        logger.info("Refresh queue stopped")

    def submit(self, modes: SourceModes) -> RefreshJob:
        """
        Queue a refresh for ``modes``.

        A job for the same modes that has not started yet is returned instead
        of queueing a duplicate.
        """
        self.start()
        for job in self._jobs.values():
            if job.state == JobState.QUEUED and job.modes == modes:
                return job

        job = RefreshJob(id=uuid.uuid4().hex, modes=modes)
        self._jobs[job.id] = job
        self._events[job.id] = asyncio.Event()
        self._queue.put_nowait(job.id)
        logger.debug(f"Queued refresh {job.id} for {modes.system.value}/{modes.user.value}")
        return job

    def get(self, job_id: str) -> Optional[RefreshJob]:
        return self._jobs.get(job_id)

    def jobs(self) -> List[RefreshJob]:
        return list(self._jobs.values())

    def cancel(self, job_id: str) -> bool:
        """Cancel a queued job. Jobs that already started run to completion."""
        job = self._jobs.get(job_id)
        if job is None or job.state != JobState.QUEUED:
            return False
        job.state = JobState.CANCELLED
        self._finish(job)
        logger.info(f"Cancelled refresh {job_id}")
        return True

    async def wait(self, job_id: str) -> RefreshJob:
        job = self._jobs[job_id]
        await self._events[job_id].wait()
        return job

    async def _run(self) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                job = self._jobs.get(job_id)
                if job is None or job.state != JobState.QUEUED:
                    continue
                # A worker stopped earlier may have left its job in flight.
                if self._current is not None and not self._current.done():
                    await asyncio.shield(self._current)
                self._current = asyncio.create_task(self._execute(job))
                await asyncio.shield(self._current)
            finally:
                self._queue.task_done()

    async def _execute(self, job: RefreshJob) -> None:
        job.state = JobState.RUNNING
        job.started_at = _now()
        try:
            await asyncio.to_thread(self.runner, job.modes)
        except Exception as e:
            job.state = JobState.FAILED
            job.error = str(e)
            logger.error(f"Refresh {job.id} failed: {e}", exc_info=True)
        else:
            job.state = JobState.SUCCEEDED
            logger.info(f"Refresh {job.id} finished")
        finally:
            if job.state == JobState.RUNNING:
                job.state = JobState.FAILED
                job.error = "interrupted"
            self._finish(job)

    def _finish(self, job: RefreshJob) -> None:
        job.finished_at = _now()
        self._events[job.id].set()
        if self.on_complete is not None:
            try:
                self.on_complete(job)
            except Exception as e:
                logger.error(f"Refresh completion callback failed: {e}", exc_info=True)
        self._prune()

    def _prune(self) -> None:
        """Forget the oldest finished jobs beyond the retention count."""
        finished = [j for j in self._jobs.values() if j.finished]
        for job in finished[: max(len(finished) - self.retention, 0)]:
            del self._jobs[job.id]
            del self._events[job.id]


_queues: Dict[Path, RefreshQueue] = {}


def get_queue_for(config: CacheConfig, runner: Optional[RefreshRunner] = None) -> RefreshQueue:
    """The refresh queue owning ``config.cache_dir``, created on first use."""
    key = config.cache_dir.expanduser().resolve()
    queue = _queues.get(key)
    if queue is None:
        if runner is None:
            def runner(modes: SourceModes) -> None:
                check_cache(modes.system, modes.user, config)
        queue = RefreshQueue(runner)
        _queues[key] = queue
    return queue
