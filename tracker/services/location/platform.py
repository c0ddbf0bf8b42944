"""
Platform Capability Interfaces

The tracker does not talk to GPS hardware or activity recognition itself.
It consumes these capabilities from a provider (the simulator, or a bridge
to a real device) that implements the interfaces below.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterable

from .models import ActivityTransition, Fix, FixPriority, TransitionEvent

TransitionCallback = Callable[[list[TransitionEvent]], None]


class LocationProvider(ABC):
    """Fused location capability: permission, service state and fixes"""

    @abstractmethod
    def has_location_permission(self) -> bool:
        ...

    @abstractmethod
    def is_location_enabled(self) -> bool:
        ...

    @abstractmethod
    async def get_last_fix(self) -> Fix | None:
        """Last cached fix, without powering up the receiver."""

    @abstractmethod
    async def get_current_fix(
        self,
        priority: FixPriority,
        max_update_age_s: float,
        duration_s: float,
    ) -> Fix | None:
        """
        Request a new fix.

        A recent fix no older than `max_update_age_s` may be returned
        instead. Returns None when no fix could be obtained in `duration_s`.

        Raises:
            PermissionDeniedError: If permission was revoked mid-request
        """


class MotionDetector(ABC):
    """Activity recognition capability"""

    @abstractmethod
    def has_activity_recognition_permission(self) -> bool:
        ...

    @abstractmethod
    async def request_transition_updates(
        self,
        transitions: Iterable[ActivityTransition],
        callback: TransitionCallback,
    ) -> None:
        """Subscribe `callback` to the given transitions (replaces any previous subscription)."""

    @abstractmethod
    async def remove_transition_updates(self) -> None:
        ...
