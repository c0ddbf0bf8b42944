"""
Location Data Models

Immutable location samples, raw provider fixes and motion transition events.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class LocationSource(str, Enum):
    """Where a sample came from"""
    FOREGROUND = "FOREGROUND"                  # User-initiated request
    BACKGROUND_WORKER = "BACKGROUND_WORKER"    # Periodic background poll
    ACTIVITY_TRIGGERED = "ACTIVITY_TRIGGERED"  # Motion state change


class FixPriority(str, Enum):
    """Accuracy / power trade-off requested from the provider"""
    HIGH_ACCURACY = "high_accuracy"
    BALANCED_POWER_ACCURACY = "balanced_power_accuracy"
    LOW_POWER = "low_power"


class ActivityType(int, Enum):
    """Detected activity types reported by the motion detector"""
    IN_VEHICLE = 0
    ON_BICYCLE = 1
    ON_FOOT = 2
    STILL = 3
    UNKNOWN = 4
    TILTING = 5
    WALKING = 7
    RUNNING = 8


class TransitionType(int, Enum):
    ENTER = 0
    EXIT = 1


MOVING_ACTIVITIES = (ActivityType.WALKING, ActivityType.RUNNING, ActivityType.ON_BICYCLE)
STATIONARY_ACTIVITIES = (ActivityType.STILL,)


@dataclass(frozen=True)
class ActivityTransition:
    """A transition the motion detector is asked to report"""
    activity_type: ActivityType
    transition_type: TransitionType


@dataclass(frozen=True)
class TransitionEvent:
    """A transition reported by the motion detector"""
    activity_type: int
    transition_type: int
    elapsed_realtime_ms: int = 0


@dataclass(frozen=True)
class Fix:
    """Raw reading returned by a location provider"""
    latitude: float
    longitude: float
    accuracy: float
    timestamp: int  # epoch ms


@dataclass(frozen=True)
class LocationSample:
    """A location update with capture metadata. Never mutated after creation."""
    latitude: float
    longitude: float
    accuracy: float
    timestamp: int  # epoch ms
    source: LocationSource
    activity_type: str | None = None
    battery_level: int | None = None

    @classmethod
    def from_fix(
        cls,
        fix: Fix,
        source: LocationSource,
        activity_type: str | None = None,
        battery_level: int | None = None,
    ) -> "LocationSample":
        return cls(
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy=fix.accuracy,
            timestamp=fix.timestamp,
            source=source,
            activity_type=activity_type,
            battery_level=battery_level,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp,
            "source": self.source.value,
            "activityType": self.activity_type,
            "batteryLevel": self.battery_level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocationSample":
        """
        Parse a stored sample.

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed
        """
        battery = data.get("batteryLevel")
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=float(data["accuracy"]),
            timestamp=int(data["timestamp"]),
            source=LocationSource(data["source"]),
            activity_type=data.get("activityType"),
            battery_level=int(battery) if battery is not None else None,
        )


@dataclass
class TrackingStats:
    """Snapshot of the tracking subsystem"""
    is_tracking_enabled: bool
    last_location_timestamp: int | None
    last_location_source: str | None
    current_activity_state: str  # MOVING / STATIONARY
    work_scheduled: bool
    current_interval: str
    pending_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_tracking_enabled": self.is_tracking_enabled,
            "last_location_timestamp": self.last_location_timestamp,
            "last_location_source": self.last_location_source,
            "current_activity_state": self.current_activity_state,
            "work_scheduled": self.work_scheduled,
            "current_interval": self.current_interval,
            "pending_count": self.pending_count,
        }
