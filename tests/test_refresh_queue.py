import asyncio
import threading
import time

from catalog_cache.core.config import CacheConfig
from catalog_cache.core.errors import NetworkError
from catalog_cache.domain.models import JobState, SourceModes, SystemPkgs, UserPkgs
from catalog_cache.services.refresh_queue import RefreshQueue, get_queue_for

LEGACY = SourceModes(system=SystemPkgs.LEGACY, user=UserPkgs.ENV)
PROFILE = SourceModes(system=SystemPkgs.NONE, user=UserPkgs.PROFILE)


class SlowRunner:
    def __init__(self, fail_on=None, delay=0.02):
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.seen = []
        self.fail_on = fail_on
        self.delay = delay

    def __call__(self, modes):
        with self.lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            self.seen.append(modes)
            if modes == self.fail_on:
                raise NetworkError("offline")
        finally:
            with self.lock:
                self.active -= 1


def test_jobs_run_one_at_a_time_in_order():
    runner = SlowRunner()

    async def scenario():
        queue = RefreshQueue(runner)
        first = queue.submit(LEGACY)
        second = queue.submit(PROFILE)
        await queue.wait(first.id)
        await queue.wait(second.id)
        await queue.stop()
        return first, second

    first, second = asyncio.run(scenario())
    assert runner.max_active == 1
    assert runner.seen == [LEGACY, PROFILE]
    assert first.state == JobState.SUCCEEDED
    assert second.state == JobState.SUCCEEDED
    assert first.finished_at <= second.started_at


def test_failure_is_recorded_on_the_job():
    runner = SlowRunner(fail_on=LEGACY)
    completed = []

    async def scenario():
        queue = RefreshQueue(runner, on_complete=completed.append)
        job = queue.submit(LEGACY)
        await queue.wait(job.id)
        await queue.stop()
        return job

    job = asyncio.run(scenario())
    assert job.state == JobState.FAILED
    assert job.error == "offline"
    assert completed == [job]


def test_queued_job_can_be_cancelled():
    runner = SlowRunner()

    async def scenario():
        queue = RefreshQueue(runner)
        first = queue.submit(LEGACY)
        second = queue.submit(PROFILE)
        assert queue.cancel(second.id)
        await queue.wait(first.id)
        assert not queue.cancel(first.id)
        await queue.stop()
        return second

    second = asyncio.run(scenario())
    assert second.state == JobState.CANCELLED
    assert runner.seen == [LEGACY]


def test_duplicate_pending_requests_are_coalesced():
    runner = SlowRunner()

    async def scenario():
        queue = RefreshQueue(runner)
        running = queue.submit(LEGACY)
        await asyncio.sleep(0)
        pending = queue.submit(PROFILE)
        again = queue.submit(PROFILE)
        await queue.wait(running.id)
        await queue.wait(pending.id)
        await queue.stop()
        return pending, again, queue

    pending, again, queue = asyncio.run(scenario())
    assert again is pending
    assert len(queue.jobs()) == 2


def test_stop_cancels_pending_jobs():
    async def scenario():
        queue = RefreshQueue(SlowRunner())
        queue.submit(LEGACY)
        job = queue.submit(PROFILE)
        await queue.stop()
        return job

    assert asyncio.run(scenario()).state == JobState.CANCELLED


def test_one_queue_per_cache_directory(tmp_path):
    a = CacheConfig(cache_dir=tmp_path / "a")
    same = CacheConfig(cache_dir=tmp_path / "a" / ".." / "a")
    b = CacheConfig(cache_dir=tmp_path / "b")
    assert get_queue_for(a) is get_queue_for(same)
    assert get_queue_for(a) is not get_queue_for(b)


def test_stop_waits_for_running_job_and_keeps_single_flight():
    runner = SlowRunner(delay=0.3)
    completed = []

    async def scenario():
        queue = RefreshQueue(runner, on_complete=completed.append)
        first = queue.submit(LEGACY)
        while first.state != JobState.RUNNING:
            await asyncio.sleep(0.01)
        await queue.stop()
        assert first.state == JobState.SUCCEEDED
        assert first.finished_at is not None

        second = queue.submit(PROFILE)
        await queue.wait(second.id)
        await queue.stop()
        return first, second

    first, second = asyncio.run(scenario())
    assert runner.max_active == 1
    assert runner.seen == [LEGACY, PROFILE]
    assert completed == [first, second]
    assert second.state == JobState.SUCCEEDED


def test_finished_jobs_beyond_retention_are_forgotten():
    async def scenario():
        queue = RefreshQueue(SlowRunner(delay=0), retention=2)
        ids = []
        for modes in (LEGACY, PROFILE, LEGACY, PROFILE):
            job = queue.submit(modes)
            await queue.wait(job.id)
            ids.append(job.id)
        await queue.stop()
        return queue, ids

    queue, ids = asyncio.run(scenario())
    assert [job.id for job in queue.jobs()] == ids[2:]
    assert queue.get(ids[0]) is None
    assert queue.get(ids[1]) is None
