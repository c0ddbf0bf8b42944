"""
Location Worker

The background poll run by the periodic location job. Each run:
1. Skips when tracking is disabled
2. Fails (non-retryable) without location permission
3. Asks for a retry when location services are off
4. Reuses a cached fix younger than 10 minutes (no hardware cost)
5. Otherwise requests a balanced-power fix, bounded to 5 seconds
6. Saves the sample and syncs the pending queue
"""

import asyncio
import time
from typing import Callable

from tracker.common.config import TrackingSettings
from tracker.common.exceptions import FixTimeoutError, PermissionDeniedError, StorageError
from tracker.common.geo import is_location_fresh, now_ms
from tracker.common.logging_setup import get_service_logger
from tracker.common.scheduler import WorkResult
from tracker.services.sync.cloud_sync import LocationSync

from .models import Fix, FixPriority, LocationSample, LocationSource
from .platform import LocationProvider
from .repository import LocationRepository

logger = get_service_logger("location.worker")


class LocationWorker:
    """Background location poll"""

    def __init__(
        self,
        provider: LocationProvider,
        repository: LocationRepository,
        sync: LocationSync,
        battery_level: Callable[[], int | None] = lambda: None,
        settings: TrackingSettings | None = None,
    ):
        self.provider = provider
        self.repository = repository
        self.sync = sync
        self.battery_level = battery_level
        self.settings = settings or TrackingSettings()

    async def do_work(self) -> WorkResult:
        logger.debug("LocationWorker started")

        if not self.repository.is_tracking_enabled():
            return WorkResult.success("tracking disabled")

        if not self.provider.has_location_permission():
            logger.warning("No location permission, stopping work")
            return WorkResult.failure("location permission missing")

        if not self.provider.is_location_enabled():
            logger.warning("Location services disabled")
            return WorkResult.retry("location services disabled")

        try:
            start = time.time()

            fix = await self._get_cached_fix()
            if fix is None:
                logger.debug("No fresh cache, requesting new location")
                fix = await self._request_fresh_fix()

            if fix is None:
                return WorkResult.no_sample("no fix obtained")

            sample = LocationSample.from_fix(
                fix,
                source=LocationSource.BACKGROUND_WORKER,
                activity_type="MOVING" if self.repository.get_last_activity_state() else "STILL",
                battery_level=self._read_battery_level(),
            )
            self.repository.save_location(sample)

            result = await self.sync.sync_pending()
            if not result.success:
                return WorkResult.retry(f"sync failed: {result.error}")

            logger.debug(f"Work completed in {(time.time() - start) * 1000:.0f}ms")
            return WorkResult.success()

        except FixTimeoutError as e:
            logger.warning(e.message)
            return WorkResult.no_sample(e.message)
        except PermissionDeniedError as e:
            logger.error(f"Permission revoked during poll: {e}")
            return WorkResult.failure(e.message)
        except StorageError as e:
            return WorkResult.retry(e.message)
        except Exception as e:
            logger.error(f"Error in LocationWorker: {e}", exc_info=True)
            return WorkResult.retry(str(e))

    async def _get_cached_fix(self) -> Fix | None:
        try:
            fix = await asyncio.wait_for(
                self.provider.get_last_fix(),
                timeout=self.settings.cached_fix_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.debug("Cached location lookup timed out")
            return None
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error(f"Error getting cached location: {e}")
            return None

        if fix is None:
            logger.debug("No cached location available")
            return None

        max_age_ms = self.settings.cache_max_age_min * 60 * 1000
        age = now_ms() - fix.timestamp
        if is_location_fresh(fix.timestamp, max_age_ms):
            logger.debug(f"Using cached location (age {age}ms)")
            return fix

        logger.debug(f"Cached location too old ({age}ms)")
        return None

    async def _request_fresh_fix(self) -> Fix | None:
        timeout = self.settings.fix_timeout_s
        try:
            fix = await asyncio.wait_for(
                self.provider.get_current_fix(
                    FixPriority.BALANCED_POWER_ACCURACY,
                    max_update_age_s=self.settings.fix_max_update_age_s,
                    duration_s=timeout,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise FixTimeoutError(timeout)
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error(f"Error requesting fresh location: {e}")
            return None

        if fix is None:
            logger.warning("Location request returned no fix")
        else:
            logger.debug(f"Fresh location obtained: accuracy={fix.accuracy:.0f}m")
        return fix

    def _read_battery_level(self) -> int | None:
        try:
            return self.battery_level()
        except Exception as e:
            logger.error(f"Error getting battery level: {e}")
            return None
