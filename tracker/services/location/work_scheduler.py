"""
Location Work Scheduler

Keeps the single periodic location job registered with an interval that
follows the motion state. Re-scheduling updates the existing job in place.
"""

from typing import Awaitable, Callable

from tracker.common.config import TrackingSettings
from tracker.common.logging_setup import get_service_logger
from tracker.common.scheduler import (
    ExistingWorkPolicy,
    PeriodicWork,
    WorkResult,
    WorkScheduler,
)

logger = get_service_logger("location.work_scheduler")

WORK_NAME = "location_tracking_work"
WORK_TAG = "location_tracking"


class LocationWorkScheduler:
    """Schedules the background location poll"""

    def __init__(
        self,
        scheduler: WorkScheduler,
        work: Callable[[], Awaitable[WorkResult]],
        settings: TrackingSettings | None = None,
        on_failure: Callable[[WorkResult], Awaitable[None]] | None = None,
    ):
        self.scheduler = scheduler
        self.work = work
        self.settings = settings or TrackingSettings()
        # Awaited when a poll fails for good and the job is cancelled
        self.on_failure = on_failure

    def interval_for(self, is_moving: bool) -> int:
        """Polling interval in minutes for a motion state"""
        if is_moving:
            return self.settings.moving_interval_min
        return self.settings.stationary_interval_min

    async def schedule_location_work(self, interval_minutes: int | None = None) -> PeriodicWork:
        """
        Schedule the periodic location job, or update its interval.

        Args:
            interval_minutes: Defaults to the moving interval
        """
        if interval_minutes is None:
            interval_minutes = self.settings.moving_interval_min

        logger.debug(f"Scheduling location work every {interval_minutes} minutes")

        work = await self.scheduler.enqueue_unique_periodic(
            PeriodicWork(
                name=WORK_NAME,
                interval_s=interval_minutes * 60,
                flex_s=self.settings.flex_interval_min * 60,
                backoff_s=self.settings.retry_backoff_min * 60,
                tags=(WORK_TAG,),
            ),
            self.work,
            policy=ExistingWorkPolicy.UPDATE,
            on_failure=self.on_failure,
        )
        return work

    def cancel_location_work(self) -> None:
        logger.debug("Cancelling location work")
        self.scheduler.cancel_unique(WORK_NAME)

    async def stop_location_work(self) -> None:
        """Cancel the job and wait for a poll that is already running."""
        loop = self.scheduler.get_loop(WORK_NAME)
        self.cancel_location_work()
        if loop is not None:
            await loop.wait_inflight()

    def is_work_scheduled(self) -> bool:
        return self.scheduler.is_scheduled(WORK_NAME)

    def current_interval_minutes(self) -> int | None:
        work = self.scheduler.get(WORK_NAME)
        if work is None:
            return None
        return int(work.interval_s // 60)
