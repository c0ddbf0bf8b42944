"""
Foreground Location Manager

Instant high-accuracy location for user-initiated requests, answered
within ~3 seconds, and the battery-free last known location.
"""

import asyncio
import time
from typing import Callable

from tracker.common.config import TrackingSettings
from tracker.common.exceptions import StorageError
from tracker.common.logging_setup import get_service_logger
from tracker.services.sync.cloud_sync import LocationSync

from .models import FixPriority, LocationSample, LocationSource
from .platform import LocationProvider
from .repository import LocationRepository

logger = get_service_logger("location.foreground")


class ForegroundLocationManager:
    """Handles on-demand location while the app is in use"""

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

    async def get_instant_location(self) -> LocationSample | None:
        """
        High-accuracy fix, saved and queued for sync.

        Returns:
            The new sample, or None without permission, with location
            services off, or when no fix arrives in time
        """
        if not self.provider.has_location_permission():
            logger.warning("No location permission")
            return None

        if not self.provider.is_location_enabled():
            logger.warning("Location services disabled")
            return None

        timeout = self.settings.foreground_timeout_s
        try:
            logger.debug("Requesting high-accuracy location")
            start = time.time()

            fix = await asyncio.wait_for(
                self.provider.get_current_fix(
                    FixPriority.HIGH_ACCURACY,
                    max_update_age_s=self.settings.foreground_max_update_age_s,
                    duration_s=timeout,
                ),
                timeout=timeout,
            )
            if fix is None:
                logger.warning("Location request returned no fix")
                return None

            logger.debug(
                f"Got location in {(time.time() - start) * 1000:.0f}ms "
                f"(accuracy: {fix.accuracy:.0f}m)"
            )

            sample = LocationSample.from_fix(
                fix,
                source=LocationSource.FOREGROUND,
                activity_type="USER_REQUESTED",
                battery_level=self._read_battery_level(),
            )
            self.repository.save_location(sample)
            await self.sync.sync_pending()
            return sample

        except asyncio.TimeoutError:
            logger.warning(f"No high-accuracy fix within {timeout:.0f}s")
            return None
        except StorageError as e:
            logger.error(f"Error saving instant location: {e}")
            return None
        except Exception as e:
            logger.error(f"Error getting instant location: {e}")
            return None

    async def get_last_known_location(self) -> LocationSample | None:
        """Last cached fix as a sample. Not persisted."""
        if not self.provider.has_location_permission():
            return None

        try:
            fix = await asyncio.wait_for(
                self.provider.get_last_fix(),
                timeout=self.settings.cached_fix_timeout_s,
            )
        except asyncio.TimeoutError:
            return None
        except Exception as e:
            logger.error(f"Error getting last known location: {e}")
            return None

        if fix is None:
            return None

        return LocationSample.from_fix(
            fix,
            source=LocationSource.FOREGROUND,
            activity_type="CACHED",
            battery_level=self._read_battery_level(),
        )

    def _read_battery_level(self) -> int | None:
        try:
            return self.battery_level()
        except Exception as e:
            logger.error(f"Error getting battery level: {e}")
            return None
