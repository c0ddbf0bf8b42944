"""
Virtual Device

Simulates the phone-side capabilities the tracker consumes:
- Fused location provider (cached fix, fresh fix with accuracy priority)
- Activity recognition (transition subscriptions)
- Runtime permissions and the location services toggle
- Battery level

Position follows a random walk around a campus origin while the device is
moving, and stays put while it is still. Tests script permissions, service
state, fix delay and failures directly on the instance.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Iterable

from tracker.common.config import SimulatorSettings
from tracker.common.exceptions import PermissionDeniedError
from tracker.common.geo import calculate_distance, now_ms, offset_position
from tracker.common.logging_setup import get_service_logger
from tracker.services.location.models import (
    MOVING_ACTIVITIES,
    ActivityTransition,
    ActivityType,
    Fix,
    FixPriority,
    TransitionEvent,
    TransitionType,
)
from tracker.services.location.platform import (
    LocationProvider,
    MotionDetector,
    TransitionCallback,
)

logger = get_service_logger("simulator.device")


@dataclass
class DeviceState:
    """
    Holds the current device state.
    """
    # Permissions and toggles
    location_permission: bool = True
    activity_permission: bool = True
    location_enabled: bool = True

    # Position
    latitude: float = 12.9716
    longitude: float = 79.1590
    accuracy_m: float = 12.0
    activity: ActivityType = ActivityType.STILL

    # Power
    battery_level: int | None = 80

    # Fix behaviour
    fix_delay_s: float = 0.0
    fix_available: bool = True
    last_fix: Fix | None = None

    subscribed: list[ActivityTransition] = field(default_factory=list)


class VirtualDevice(LocationProvider, MotionDetector):
    """
    In-process device implementing the location and motion capabilities.

    Attributes:
        fix_request_count: Number of fresh (hardware) fix requests served
    """

    def __init__(self, settings: SimulatorSettings | None = None, seed: int | None = None):
        self.settings = settings or SimulatorSettings()
        self.state = DeviceState(
            latitude=self.settings.origin_lat,
            longitude=self.settings.origin_lon,
            accuracy_m=self.settings.accuracy_m,
            battery_level=self.settings.battery_level,
        )
        self.fix_request_count = 0
        self._callback: TransitionCallback | None = None
        self._random = random.Random(seed)

        logger.info(
            f"Virtual device initialized at ({self.state.latitude:.4f}, "
            f"{self.state.longitude:.4f})"
        )

    # Permissions and toggles

    def has_location_permission(self) -> bool:
        return self.state.location_permission

    def is_location_enabled(self) -> bool:
        return self.state.location_enabled

    def has_activity_recognition_permission(self) -> bool:
        return self.state.activity_permission

    def set_location_permission(self, granted: bool) -> None:
        self.state.location_permission = granted
        logger.info(f"Location permission {'granted' if granted else 'revoked'}")

    def set_activity_permission(self, granted: bool) -> None:
        self.state.activity_permission = granted

    def set_location_enabled(self, enabled: bool) -> None:
        self.state.location_enabled = enabled
        logger.info(f"Location services {'enabled' if enabled else 'disabled'}")

    def set_fix_delay(self, delay_s: float) -> None:
        """Delay before a fresh fix is returned (simulates a slow GPS lock)."""
        self.state.fix_delay_s = delay_s

    def set_fix_available(self, available: bool) -> None:
        """When False, fresh fix requests return no fix."""
        self.state.fix_available = available

    def set_last_fix(self, fix: Fix | None) -> None:
        """Replace the cached fix (e.g. with a stale or fresh one)."""
        self.state.last_fix = fix

    def set_battery_level(self, level: int | None) -> None:
        self.state.battery_level = level

    def get_battery_level(self) -> int | None:
        return self.state.battery_level

    # Location provider

    async def get_last_fix(self) -> Fix | None:
        if not self.state.location_permission:
            raise PermissionDeniedError("ACCESS_FINE_LOCATION")
        return self.state.last_fix

    async def get_current_fix(
        self,
        priority: FixPriority,
        max_update_age_s: float,
        duration_s: float,
    ) -> Fix | None:
        if not self.state.location_permission:
            raise PermissionDeniedError("ACCESS_FINE_LOCATION")

        self.fix_request_count += 1

        cached = self.state.last_fix
        if cached is not None and now_ms() - cached.timestamp < max_update_age_s * 1000:
            return cached

        if self.state.fix_delay_s > 0:
            await asyncio.sleep(self.state.fix_delay_s)

        if not self.state.fix_available or not self.state.location_enabled:
            return None

        self._step()
        accuracy = self.state.accuracy_m
        if priority == FixPriority.BALANCED_POWER_ACCURACY:
            accuracy *= 4
        elif priority == FixPriority.LOW_POWER:
            accuracy *= 20

        fix = Fix(
            latitude=self.state.latitude,
            longitude=self.state.longitude,
            accuracy=accuracy,
            timestamp=now_ms(),
        )
        self.state.last_fix = fix
        logger.debug(
            f"Fix ({priority.value}): ({fix.latitude:.5f}, {fix.longitude:.5f}) "
            f"±{fix.accuracy:.0f}m"
        )
        return fix

    def _step(self) -> None:
        """Random walk while moving"""
        if self.state.activity not in MOVING_ACTIVITIES:
            return
        step = self.settings.step_m
        self.state.latitude, self.state.longitude = offset_position(
            self.state.latitude,
            self.state.longitude,
            north_m=self._random.uniform(-step, step),
            east_m=self._random.uniform(-step, step),
        )
        from_origin = calculate_distance(
            self.settings.origin_lat,
            self.settings.origin_lon,
            self.state.latitude,
            self.state.longitude,
        )
        logger.debug(f"Walked to {from_origin:.0f}m from origin")

    # Motion detector

    async def request_transition_updates(
        self,
        transitions: Iterable[ActivityTransition],
        callback: TransitionCallback,
    ) -> None:
        if not self.state.activity_permission:
            raise PermissionDeniedError("ACTIVITY_RECOGNITION")
        self.state.subscribed = list(transitions)
        self._callback = callback
        logger.debug(f"Subscribed to {len(self.state.subscribed)} activity transitions")

    async def remove_transition_updates(self) -> None:
        self.state.subscribed = []
        self._callback = None

    @property
    def is_subscribed(self) -> bool:
        return self._callback is not None

    def emit_transition(
        self,
        activity: ActivityType,
        transition: TransitionType = TransitionType.ENTER,
    ) -> bool:
        """
        Report a motion transition.

        The device's own activity follows ENTER events. Subscribers only
        hear about transitions they asked for.

        Returns:
            True if a subscriber was notified
        """
        if transition == TransitionType.ENTER:
            self.state.activity = activity

        wanted = ActivityTransition(activity, transition)
        if self._callback is None or wanted not in self.state.subscribed:
            return False

        self._callback([
            TransitionEvent(
                activity_type=int(activity),
                transition_type=int(transition),
                elapsed_realtime_ms=now_ms(),
            )
        ])
        return True

    def __repr__(self) -> str:
        return (f"VirtualDevice(activity={self.state.activity.name}, "
                f"position=({self.state.latitude:.4f}, {self.state.longitude:.4f}), "
                f"permission={self.state.location_permission})")
