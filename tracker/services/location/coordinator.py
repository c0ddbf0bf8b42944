"""
Location Tracking Coordinator

Entry point for location tracking. Owns the tracking lifecycle:
- Foreground: instant location on demand (~3s)
- Background: periodic poll every 15 min while moving, 30 min when stationary
- Motion transitions switch between the two intervals
- Pending locations are synced to the backend after each sample
"""

import asyncio
from typing import Callable

from tracker.common.exceptions import TrackingUnavailableError
from tracker.common.logging_setup import get_service_logger
from tracker.common.scheduler import WorkResult
from tracker.services.sync.cloud_sync import LocationSync, SyncResult

from .activity import ActivityRecognitionManager
from .foreground import ForegroundLocationManager
from .models import LocationSample, TrackingStats
from .platform import LocationProvider, MotionDetector
from .repository import LocationRepository
from .work_scheduler import LocationWorkScheduler

logger = get_service_logger("location.coordinator")


class LocationTrackingCoordinator:
    """Coordinates foreground, background and motion-driven tracking"""

    def __init__(
        self,
        provider: LocationProvider,
        detector: MotionDetector,
        repository: LocationRepository,
        work_scheduler: LocationWorkScheduler,
        foreground: ForegroundLocationManager,
        sync: LocationSync,
        activity_factory: Callable[..., ActivityRecognitionManager] = ActivityRecognitionManager,
    ):
        self.provider = provider
        self.detector = detector
        self.repository = repository
        self.work_scheduler = work_scheduler
        self.foreground = foreground
        self.sync = sync
        self.activity = activity_factory(detector, self.set_motion_state)
        self.work_scheduler.on_failure = self._handle_work_failure

        self._tracking_active = False
        self._lock = asyncio.Lock()
        self._background_tasks: set[asyncio.Task] = set()

    async def start_tracking(self) -> None:
        """
        Start background tracking.

        Raises:
            TrackingUnavailableError: Missing permission (not recoverable)
                or location services disabled
        """
        async with self._lock:
            if self._tracking_active and self.work_scheduler.is_work_scheduled():
                logger.debug("Tracking already active")
                return

            if not self.provider.has_location_permission():
                raise TrackingUnavailableError("location permission not granted")
            if not self.detector.has_activity_recognition_permission():
                raise TrackingUnavailableError("activity recognition permission not granted")
            if not self.provider.is_location_enabled():
                raise TrackingUnavailableError("location services disabled", recoverable=True)

            logger.info("Starting location tracking")

            self.repository.set_tracking_enabled(True)
            await self.activity.start_monitoring()

            is_moving = self.repository.get_last_activity_state()
            await self.work_scheduler.schedule_location_work(
                self.work_scheduler.interval_for(is_moving)
            )

            self._tracking_active = True
            logger.info("Location tracking started successfully")

    async def stop_tracking(self) -> None:
        """
        Stop all tracking.

        A poll already running is left to finish before this returns;
        none is started afterwards.
        """
        async with self._lock:
            logger.info("Stopping location tracking")

            self.repository.set_tracking_enabled(False)
            await self.activity.stop_monitoring()

            self._tracking_active = False
            await self.work_scheduler.stop_location_work()

            logger.info("Location tracking stopped")

    async def _handle_work_failure(self, result: WorkResult) -> None:
        """The poll job was cancelled after a non-retryable failure."""
        logger.warning(f"Background tracking stopped: {result.reason}")

        self._tracking_active = False
        self.repository.set_tracking_enabled(False)
        await self.activity.stop_monitoring()

    async def set_motion_state(self, is_moving: bool) -> None:
        """
        Record the motion state and, while tracking, switch the poll interval.

        The periodic job is updated in place; repeating the current state
        leaves the interval unchanged.
        """
        self.repository.save_activity_state(is_moving)

        if not self._tracking_active:
            logger.debug(f"Motion state {'MOVING' if is_moving else 'STATIONARY'} stored, tracking inactive")
            return

        interval = self.work_scheduler.interval_for(is_moving)
        logger.info(
            f"Motion state: {'MOVING' if is_moving else 'STATIONARY'}, "
            f"polling every {interval} minutes"
        )
        await self.work_scheduler.schedule_location_work(interval)

    async def get_instant_location(self) -> LocationSample | None:
        return await self.foreground.get_instant_location()

    async def get_last_known_location(self) -> LocationSample | None:
        return await self.foreground.get_last_known_location()

    def is_tracking(self) -> bool:
        return self._tracking_active

    async def force_sync_locations(self) -> SyncResult:
        return await self.sync.sync_pending()

    def get_tracking_stats(self) -> TrackingStats:
        last_location = self.repository.get_last_location()
        is_moving = self.repository.get_last_activity_state()

        return TrackingStats(
            is_tracking_enabled=self.repository.is_tracking_enabled(),
            last_location_timestamp=last_location.timestamp if last_location else None,
            last_location_source=last_location.source.value if last_location else None,
            current_activity_state="MOVING" if is_moving else "STATIONARY",
            work_scheduled=self.work_scheduler.is_work_scheduled(),
            current_interval=f"{self.work_scheduler.interval_for(is_moving)} minutes",
            pending_count=self.repository.get_pending_count(),
        )

    def handle_app_foreground(self) -> None:
        """App came to the foreground: refresh the location if tracking"""
        if not self._tracking_active:
            return

        task = asyncio.get_running_loop().create_task(self._refresh_location())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def handle_app_background(self) -> None:
        """Background polling continues on its own"""

    async def _refresh_location(self) -> None:
        try:
            await self.get_instant_location()
        except Exception as e:
            logger.error(f"Foreground location refresh failed: {e}")

    async def cleanup(self) -> None:
        await self.stop_tracking()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        await self.activity.drain()
