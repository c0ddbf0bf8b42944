"""
Location Repository

Persists the last known location, the bounded pending queue of samples
awaiting upload, the motion state and the tracking-enabled flag in the
local key-value store.
"""

from collections import Counter
from typing import Iterable

from tracker.common.exceptions import StorageError
from tracker.common.logging_setup import get_service_logger, log_location_sample
from tracker.common.state import KeyValueStore

from .models import LocationSample

logger = get_service_logger("location.repository")

KEY_LAST_LOCATION = "last_location"
KEY_PENDING_LOCATIONS = "pending_locations"
KEY_LAST_ACTIVITY_STATE = "last_activity_state"
KEY_TRACKING_ENABLED = "tracking_enabled"

MAX_PENDING_LOCATIONS = 100


class LocationRepository:
    """
    Local persistence for location tracking.

    The pending queue keeps insertion order and holds at most `max_pending`
    samples; once full, the oldest samples are dropped first.
    """

    def __init__(self, store: KeyValueStore, max_pending: int = MAX_PENDING_LOCATIONS):
        self.store = store
        self.max_pending = max_pending

    def save_location(self, sample: LocationSample) -> None:
        """
        Record a sample as last known and append it to the pending queue.

        Raises:
            StorageError: If the store cannot be written
        """
        try:
            self.store.set_value(KEY_LAST_LOCATION, sample.to_dict())

            pending = self.get_pending_locations()
            pending.append(sample)
            if len(pending) > self.max_pending:
                pending = pending[-self.max_pending:]

            self._save_pending_locations(pending)
        except StorageError as e:
            logger.error(f"Error saving location: {e}")
            raise

        log_location_sample(logger, sample)

    def get_last_location(self) -> LocationSample | None:
        data = self.store.get_value(KEY_LAST_LOCATION)
        if not data:
            return None
        try:
            return LocationSample.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Error reading last location: {e}")
            return None

    def get_pending_locations(self) -> list[LocationSample]:
        """All samples waiting to be synced, oldest first"""
        records = self.store.get_value(KEY_PENDING_LOCATIONS, [])
        if not isinstance(records, list):
            logger.error("Pending locations record is not a list, ignoring it")
            return []

        locations = []
        for record in records:
            try:
                locations.append(LocationSample.from_dict(record))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.error(f"Error parsing pending location: {e}")
        return locations

    def get_pending_count(self) -> int:
        return len(self.get_pending_locations())

    def remove_pending(self, delivered: Iterable[LocationSample]) -> int:
        """
        Remove delivered samples from the queue.

        Samples appended after the delivered batch was read are kept.

        Returns:
            Number of samples removed
        """
        to_remove = Counter(delivered)
        if not to_remove:
            return 0

        remaining = []
        removed = 0
        for sample in self.get_pending_locations():
            if to_remove[sample] > 0:
                to_remove[sample] -= 1
                removed += 1
            else:
                remaining.append(sample)

        self._save_pending_locations(remaining)
        logger.debug(f"Removed {removed} delivered locations, {len(remaining)} still pending")
        return removed

    def clear_pending_locations(self) -> None:
        self.store.delete(KEY_PENDING_LOCATIONS)
        logger.debug("Cleared pending locations")

    def save_activity_state(self, is_moving: bool) -> None:
        self.store.set_bool(KEY_LAST_ACTIVITY_STATE, is_moving)
        logger.debug(f"Activity state saved: {'MOVING' if is_moving else 'STATIONARY'}")

    def get_last_activity_state(self) -> bool:
        return self.store.get_bool(KEY_LAST_ACTIVITY_STATE, False)

    def set_tracking_enabled(self, enabled: bool) -> None:
        self.store.set_bool(KEY_TRACKING_ENABLED, enabled)
        logger.debug(f"Tracking {'enabled' if enabled else 'disabled'}")

    def is_tracking_enabled(self) -> bool:
        return self.store.get_bool(KEY_TRACKING_ENABLED, False)

    def _save_pending_locations(self, locations: list[LocationSample]) -> None:
        self.store.set_value(KEY_PENDING_LOCATIONS, [s.to_dict() for s in locations])
