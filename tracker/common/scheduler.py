"""
Scheduler for Periodic Background Work

Provides ScheduledLoop, which fires an async callback at fixed intervals
and accounts for callback execution time to prevent drift, and
WorkScheduler, which keeps at most one periodic job per unique name.

Unlike asyncio.sleep()-based loops, ScheduledLoop:
- Fires relative to the original schedule, not to when the callback finished
- Skips missed intervals to catch up
- Can change its interval in place, or pull the next run forward (retries)
- Lets an in-flight callback finish when the loop is stopped

Usage:
    scheduler = WorkScheduler()
    await scheduler.enqueue_unique_periodic(
        PeriodicWork(name="location_tracking_work", interval_s=900),
        worker.do_work,
    )

    # Later, with a new interval (no second job is created):
    await scheduler.enqueue_unique_periodic(
        PeriodicWork(name="location_tracking_work", interval_s=1800),
        worker.do_work,
        policy=ExistingWorkPolicy.UPDATE,
    )
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from .logging_setup import get_service_logger, log_work_result

logger = get_service_logger("scheduler")


class WorkStatus(str, Enum):
    """Outcome of a single work run"""
    SUCCESS = "success"
    RETRY = "retry"          # Re-run after backoff
    NO_SAMPLE = "no_sample"  # Nothing done this tick, wait for the next one
    FAILURE = "failure"      # Non-retryable, the job is cancelled


@dataclass(frozen=True)
class WorkResult:
    """Result returned by periodic work callbacks"""
    status: WorkStatus
    reason: str = ""

    @classmethod
    def success(cls, reason: str = "") -> "WorkResult":
        return cls(WorkStatus.SUCCESS, reason)

    @classmethod
    def retry(cls, reason: str = "") -> "WorkResult":
        return cls(WorkStatus.RETRY, reason)

    @classmethod
    def no_sample(cls, reason: str = "") -> "WorkResult":
        return cls(WorkStatus.NO_SAMPLE, reason)

    @classmethod
    def failure(cls, reason: str = "") -> "WorkResult":
        return cls(WorkStatus.FAILURE, reason)

    @property
    def is_retryable(self) -> bool:
        return self.status != WorkStatus.FAILURE


class ExistingWorkPolicy(str, Enum):
    """What to do when a unique job with the same name already exists"""
    UPDATE = "update"    # Change parameters of the existing job in place
    REPLACE = "replace"  # Cancel the existing job and create a new one
    KEEP = "keep"        # Leave the existing job untouched


class ScheduledLoop:
    """
    Interval scheduler that accounts for execution time.

    Attributes:
        interval: The interval in seconds between executions
        callback: Async function to call each interval
        drift_seconds: Total accumulated drift (for observability)
        skipped_count: Number of intervals skipped (to catch up)
    """

    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "unnamed",
        initial_delay: float | None = None,
    ):
        """
        Initialize a scheduled loop.

        Args:
            interval_seconds: Time between executions (supports sub-second)
            callback: Async function to call each interval
            name: Name for logging/identification
            initial_delay: Seconds before the first run. None aligns the
                first run to the next interval boundary.
        """
        self.interval = interval_seconds
        self.callback = callback
        self.name = name
        self.initial_delay = initial_delay

        self._next_run: float = 0
        self._last_run_started: float | None = None
        self._started_at: float = 0
        self._running = False
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._wakeup = asyncio.Event()

        # Observability metrics
        self._drift_total: float = 0
        self._skipped_count: int = 0
        self._execution_count: int = 0
        self._last_execution_time: float = 0
        self._last_drift_ms: float = 0

    async def start(self) -> None:
        """Start the scheduled loop in a background task."""
        if self._running:
            return

        self._running = True
        self._started_at = time.time()
        if self.initial_delay is None:
            self._next_run = ((self._started_at // self.interval) + 1) * self.interval
        else:
            self._next_run = self._started_at + self.initial_delay
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """
        Stop the scheduled loop.

        A callback that is already running is not interrupted; it completes
        on its own, but no further runs are started.
        """
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None

    def update_interval(self, interval_seconds: float) -> None:
        """Change the interval, keeping the schedule's phase."""
        if interval_seconds == self.interval:
            return

        self.interval = interval_seconds
        anchor = self._last_run_started or self._started_at or time.time()
        self._next_run = max(anchor + interval_seconds, time.time())
        self._wakeup.set()

    def run_after(self, delay_seconds: float) -> None:
        """Pull the next run forward to `delay_seconds` from now, if sooner."""
        target = time.time() + delay_seconds
        if target < self._next_run:
            self._next_run = target
            self._wakeup.set()

    async def wait_inflight(self) -> None:
        """Wait for a running callback to finish (used on shutdown)."""
        if self._inflight and not self._inflight.done():
            await asyncio.wait({self._inflight})

    async def _wait_until_due(self) -> None:
        while self._running:
            remaining = self._next_run - time.time()
            if remaining <= 0:
                return
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass

    async def _execute(self) -> None:
        try:
            start = time.time()
            await self.callback()
            self._last_execution_time = time.time() - start
            self._execution_count += 1
        except Exception as e:
            logger.error(f"Scheduled callback '{self.name}' error: {e}")

    async def _run(self) -> None:
        """Main loop that fires callback at scheduled times."""
        while self._running:
            try:
                await self._wait_until_due()
            except asyncio.CancelledError:
                break

            if not self._running:
                break

            actual_time = time.time()
            drift = actual_time - self._next_run

            if drift > 30:
                # Clock jump (suspend/resume, NTP correction): not real drift
                logger.info(
                    f"Scheduler '{self.name}' clock jump detected ({drift:.0f}s), realigning"
                )
                self._last_drift_ms = 0
            else:
                self._drift_total += max(0, drift)
                self._last_drift_ms = drift * 1000

            # Advance before executing so the callback may pull the next run forward
            skipped = 0
            while self._next_run <= actual_time:
                self._next_run += self.interval
                skipped += 1
            if skipped > 1:
                self._skipped_count += skipped - 1
                logger.warning(
                    f"Scheduler '{self.name}' skipped {skipped - 1} intervals"
                )

            self._last_run_started = actual_time
            self._inflight = asyncio.create_task(self._execute())
            try:
                await asyncio.shield(self._inflight)
            except asyncio.CancelledError:
                break

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def next_run(self) -> float:
        """Epoch seconds of the next scheduled run."""
        return self._next_run

    @property
    def drift_seconds(self) -> float:
        """Total accumulated drift in seconds."""
        return self._drift_total

    @property
    def skipped_count(self) -> int:
        """Number of intervals skipped to catch up."""
        return self._skipped_count

    @property
    def execution_count(self) -> int:
        """Total number of completed executions."""
        return self._execution_count

    @property
    def last_execution_time(self) -> float:
        """Duration of last callback execution in seconds."""
        return self._last_execution_time

    def get_stats(self) -> dict:
        """Get scheduler statistics for observability."""
        return {
            "name": self.name,
            "interval_s": self.interval,
            "execution_count": self._execution_count,
            "drift_total_s": round(self._drift_total, 3),
            "drift_last_ms": round(self._last_drift_ms, 1),
            "skipped_count": self._skipped_count,
            "last_execution_s": round(self._last_execution_time, 3),
            "next_run_in_s": round(max(0.0, self._next_run - time.time()), 1),
        }


@dataclass
class PeriodicWork:
    """Descriptor of a unique periodic job"""
    name: str
    interval_s: float
    flex_s: float = 0.0
    backoff_s: float = 0.0  # Linear: backoff_s * consecutive retries
    tags: tuple[str, ...] = ()
    enqueued_at: float = field(default_factory=time.time)
    run_count: int = 0
    run_attempt: int = 0
    last_result: WorkResult | None = None


class WorkScheduler:
    """
    Registry of unique periodic jobs.

    Jobs are keyed by name: re-enqueueing a name never creates a second
    concurrent schedule. Work callbacks return a WorkResult which drives
    retry (linear backoff) and cancellation (non-retryable failure).
    """

    def __init__(self):
        self._work: dict[str, tuple[PeriodicWork, ScheduledLoop]] = {}
        self._on_failure: dict[str, Callable[[WorkResult], Awaitable[None]]] = {}

    async def enqueue_unique_periodic(
        self,
        work: PeriodicWork,
        callback: Callable[[], Awaitable[WorkResult]],
        policy: ExistingWorkPolicy = ExistingWorkPolicy.UPDATE,
        on_failure: Callable[[WorkResult], Awaitable[None]] | None = None,
    ) -> PeriodicWork:
        """
        Register a periodic job, or apply `policy` if one with the same name exists.

        Args:
            on_failure: Awaited after a FAILURE result has cancelled the job

        Returns:
            The descriptor now registered under `work.name`
        """
        existing = self._work.get(work.name)

        if existing is not None:
            current, loop = existing

            if policy == ExistingWorkPolicy.KEEP:
                return current

            if policy == ExistingWorkPolicy.UPDATE:
                if current.interval_s != work.interval_s:
                    logger.info(
                        f"Updating work '{work.name}' interval: "
                        f"{current.interval_s:.0f}s -> {work.interval_s:.0f}s"
                    )
                    current.interval_s = work.interval_s
                    loop.update_interval(work.interval_s)
                current.flex_s = work.flex_s
                current.backoff_s = work.backoff_s
                current.tags = work.tags
                if on_failure is not None:
                    self._on_failure[work.name] = on_failure
                return current

            # REPLACE
            self.cancel_unique(work.name)

        loop = ScheduledLoop(
            work.interval_s,
            lambda: self._run_work(work.name, callback),
            name=work.name,
            initial_delay=0,
        )
        self._work[work.name] = (work, loop)
        if on_failure is not None:
            self._on_failure[work.name] = on_failure
        await loop.start()

        logger.info(f"Scheduled work '{work.name}' every {work.interval_s:.0f}s")
        return work

    def cancel_unique(self, name: str) -> bool:
        """Cancel a job by name. Returns False if nothing was scheduled."""
        entry = self._work.pop(name, None)
        self._on_failure.pop(name, None)
        if entry is None:
            return False

        _, loop = entry
        loop.stop()
        logger.info(f"Cancelled work '{name}'")
        return True

    def cancel_all(self) -> None:
        for name in list(self._work):
            self.cancel_unique(name)

    def is_scheduled(self, name: str) -> bool:
        entry = self._work.get(name)
        return entry is not None and entry[1].is_running

    def get(self, name: str) -> PeriodicWork | None:
        entry = self._work.get(name)
        return entry[0] if entry else None

    def get_loop(self, name: str) -> ScheduledLoop | None:
        entry = self._work.get(name)
        return entry[1] if entry else None

    def get_stats(self) -> dict:
        """Aggregated statistics for all jobs."""
        stats = {}
        for name, (work, loop) in self._work.items():
            stats[name] = {
                **loop.get_stats(),
                "flex_s": work.flex_s,
                "backoff_s": work.backoff_s,
                "tags": list(work.tags),
                "run_count": work.run_count,
                "last_result": work.last_result.status.value if work.last_result else None,
            }
        return stats

    async def _run_work(
        self,
        name: str,
        callback: Callable[[], Awaitable[WorkResult]],
    ) -> None:
        entry = self._work.get(name)
        if entry is None:
            return
        work, loop = entry

        start = time.time()
        try:
            result = await callback()
        except Exception as e:
            logger.error(f"Work '{name}' raised: {e}", exc_info=True)
            result = WorkResult.retry(str(e))

        work.run_count += 1
        work.last_result = result
        log_work_result(
            logger,
            name,
            result.status.value,
            result.reason,
            duration_ms=(time.time() - start) * 1000,
        )

        # The job may have been cancelled or replaced while running
        if self._work.get(name) is not entry:
            return

        if result.status == WorkStatus.FAILURE:
            on_failure = self._on_failure.get(name)
            self.cancel_unique(name)
            if on_failure is not None:
                try:
                    await on_failure(result)
                except Exception as e:
                    logger.error(f"Failure handler for '{name}' raised: {e}", exc_info=True)
        elif result.status == WorkStatus.RETRY:
            work.run_attempt += 1
            if work.backoff_s > 0:
                loop.run_after(work.backoff_s * work.run_attempt)
        else:
            work.run_attempt = 0
