import asyncio

import pytest

from conftest import wait_until
from tracker.common.scheduler import (
    ExistingWorkPolicy,
    PeriodicWork,
    ScheduledLoop,
    WorkResult,
    WorkScheduler,
    WorkStatus,
)


class CountingWork:
    def __init__(self, results=None, delay: float = 0):
        self.calls = 0
        self.results = list(results or [])
        self.delay = delay

    async def __call__(self) -> WorkResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.results:
            return self.results.pop(0)
        return WorkResult.success()


def test_work_result_factories():
    assert WorkResult.success().status == WorkStatus.SUCCESS
    assert WorkResult.retry("x").reason == "x"
    assert WorkResult.no_sample().is_retryable
    assert not WorkResult.failure().is_retryable


@pytest.mark.asyncio
async def test_scheduled_loop_runs_periodically():
    calls = []

    async def tick():
        calls.append(1)

    loop = ScheduledLoop(0.05, tick, name="tick", initial_delay=0)
    await loop.start()
    await wait_until(lambda: len(calls) >= 3)
    loop.stop()

    assert loop.execution_count >= 3
    assert not loop.is_running


@pytest.mark.asyncio
async def test_update_interval_pushes_next_run():
    async def tick():
        pass

    loop = ScheduledLoop(1.0, tick, name="tick", initial_delay=0)
    await loop.start()
    await wait_until(lambda: loop.execution_count == 1)

    loop.update_interval(60.0)
    assert loop.interval == 60.0
    assert 55 < loop.get_stats()["next_run_in_s"] <= 60
    loop.stop()


@pytest.mark.asyncio
async def test_enqueue_update_keeps_single_job():
    scheduler = WorkScheduler()
    work = CountingWork()

    await scheduler.enqueue_unique_periodic(PeriodicWork("job", interval_s=1800), work)
    loop = scheduler.get_loop("job")

    await scheduler.enqueue_unique_periodic(
        PeriodicWork("job", interval_s=900), work, policy=ExistingWorkPolicy.UPDATE
    )
    await scheduler.enqueue_unique_periodic(
        PeriodicWork("job", interval_s=900), work, policy=ExistingWorkPolicy.UPDATE
    )

    assert scheduler.get_loop("job") is loop
    assert list(scheduler.get_stats()) == ["job"]
    assert scheduler.get("job").interval_s == 900
    assert loop.interval == 900

    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_enqueue_keep_and_replace():
    scheduler = WorkScheduler()
    work = CountingWork()

    original = await scheduler.enqueue_unique_periodic(PeriodicWork("job", interval_s=600), work)
    kept = await scheduler.enqueue_unique_periodic(
        PeriodicWork("job", interval_s=60), work, policy=ExistingWorkPolicy.KEEP
    )
    assert kept is original
    assert kept.interval_s == 600

    old_loop = scheduler.get_loop("job")
    await scheduler.enqueue_unique_periodic(
        PeriodicWork("job", interval_s=60), work, policy=ExistingWorkPolicy.REPLACE
    )
    assert scheduler.get_loop("job") is not old_loop
    assert not old_loop.is_running
    assert scheduler.get("job").interval_s == 60

    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_failure_cancels_job():
    scheduler = WorkScheduler()
    work = CountingWork(results=[WorkResult.failure("no permission")])

    await scheduler.enqueue_unique_periodic(PeriodicWork("job", interval_s=0.05), work)
    await wait_until(lambda: not scheduler.is_scheduled("job"))
    await asyncio.sleep(0.15)

    assert work.calls == 1
    assert scheduler.get("job") is None


@pytest.mark.asyncio
async def test_failure_handler_runs_after_cancel():
    scheduler = WorkScheduler()
    work = CountingWork(results=[WorkResult.failure("no permission")])
    seen = []

    async def on_failure(result):
        seen.append((result.reason, scheduler.is_scheduled("job")))

    await scheduler.enqueue_unique_periodic(
        PeriodicWork("job", interval_s=0.05), work, on_failure=on_failure
    )
    await wait_until(lambda: seen)

    assert seen == [("no permission", False)]


@pytest.mark.asyncio
async def test_update_keeps_failure_handler():
    scheduler = WorkScheduler()
    seen = []

    async def on_failure(result):
        seen.append(result.status)

    work = CountingWork(results=[WorkResult.success(), WorkResult.failure("gone")])

    await scheduler.enqueue_unique_periodic(
        PeriodicWork("job", interval_s=600), work, on_failure=on_failure
    )
    await wait_until(lambda: scheduler.get("job").run_count == 1)

    await scheduler.enqueue_unique_periodic(PeriodicWork("job", interval_s=300), work)
    scheduler.get_loop("job").run_after(0)
    await wait_until(lambda: seen)

    assert seen == [WorkStatus.FAILURE]
    assert not scheduler.is_scheduled("job")


@pytest.mark.asyncio
async def test_retry_uses_backoff():
    scheduler = WorkScheduler()
    work = CountingWork(results=[WorkResult.retry("service off"), WorkResult.success()])

    await scheduler.enqueue_unique_periodic(
        PeriodicWork("job", interval_s=600, backoff_s=0.05), work
    )
    await wait_until(lambda: work.calls == 2)

    job = scheduler.get("job")
    await wait_until(lambda: job.run_count == 2)
    assert job.run_attempt == 0
    assert job.last_result.status == WorkStatus.SUCCESS

    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_no_runs_after_cancel():
    scheduler = WorkScheduler()
    work = CountingWork()

    await scheduler.enqueue_unique_periodic(PeriodicWork("job", interval_s=0.05), work)
    await wait_until(lambda: work.calls >= 2)

    loop = scheduler.get_loop("job")
    scheduler.cancel_unique("job")
    await loop.wait_inflight()
    calls_at_stop = work.calls

    await asyncio.sleep(0.2)
    assert work.calls == calls_at_stop
    assert not scheduler.is_scheduled("job")


@pytest.mark.asyncio
async def test_cancel_lets_inflight_run_finish():
    scheduler = WorkScheduler()
    finished = []

    async def slow_work():
        await asyncio.sleep(0.1)
        finished.append(True)
        return WorkResult.success()

    await scheduler.enqueue_unique_periodic(PeriodicWork("job", interval_s=600), slow_work)
    loop = scheduler.get_loop("job")
    await asyncio.sleep(0.02)

    scheduler.cancel_unique("job")
    await loop.wait_inflight()

    assert finished == [True]


@pytest.mark.asyncio
async def test_raising_work_is_treated_as_retry():
    scheduler = WorkScheduler()

    async def broken():
        raise RuntimeError("boom")

    await scheduler.enqueue_unique_periodic(PeriodicWork("job", interval_s=600), broken)
    await wait_until(lambda: scheduler.get("job").run_count == 1)

    assert scheduler.get("job").last_result.status == WorkStatus.RETRY
    assert scheduler.is_scheduled("job")
    scheduler.cancel_all()
