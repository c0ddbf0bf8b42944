"""
Activity Recognition Manager

Subscribes to motion transitions with minimal battery cost and turns them
into a binary motion state:
- ENTER WALKING / RUNNING / ON_BICYCLE -> moving
- ENTER STILL -> stationary
EXIT events and other activities leave the state unchanged.
"""

import asyncio
from typing import Awaitable, Callable

from tracker.common.logging_setup import get_service_logger, log_motion_transition

from .models import (
    MOVING_ACTIVITIES,
    STATIONARY_ACTIVITIES,
    ActivityTransition,
    ActivityType,
    TransitionEvent,
    TransitionType,
)
from .platform import MotionDetector

logger = get_service_logger("location.activity")

MotionCallback = Callable[[bool], Awaitable[None]]


class ActivityRecognitionManager:
    """Monitors when the user starts or stops moving"""

    def __init__(self, detector: MotionDetector, on_motion_change: MotionCallback):
        self.detector = detector
        self.on_motion_change = on_motion_change
        self._monitoring = False
        self._pending: set[asyncio.Task] = set()

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    async def start_monitoring(self) -> bool:
        """
        Start monitoring activity transitions.

        Returns:
            True if the subscription was registered
        """
        if not self.detector.has_activity_recognition_permission():
            logger.warning("Activity recognition permission not granted")
            return False

        try:
            await self.detector.request_transition_updates(
                self.build_transition_request(),
                self._on_transitions,
            )
        except Exception as e:
            logger.error(f"Failed to start activity recognition: {e}")
            return False

        self._monitoring = True
        logger.debug("Activity recognition started")
        return True

    async def stop_monitoring(self) -> None:
        try:
            await self.detector.remove_transition_updates()
            logger.debug("Activity recognition stopped")
        except Exception as e:
            logger.error(f"Failed to stop activity recognition: {e}")
        finally:
            self._monitoring = False

    @staticmethod
    def build_transition_request() -> list[ActivityTransition]:
        """ENTER transitions for moving and stationary activities"""
        return [
            ActivityTransition(activity, TransitionType.ENTER)
            for activity in (*MOVING_ACTIVITIES, *STATIONARY_ACTIVITIES)
        ]

    @staticmethod
    def get_activity_name(activity_type: int) -> str:
        try:
            return ActivityType(activity_type).name
        except ValueError:
            return "UNKNOWN"

    async def handle_transitions(self, events: list[TransitionEvent]) -> None:
        """Apply a batch of transition events, in order"""
        for event in events:
            activity_name = self.get_activity_name(event.activity_type)
            is_enter = event.transition_type == TransitionType.ENTER
            log_motion_transition(logger, activity_name, "ENTER" if is_enter else "EXIT")

            if not is_enter:
                continue

            if event.activity_type in MOVING_ACTIVITIES:
                logger.info(f"User is MOVING ({activity_name})")
                await self.on_motion_change(True)
            elif event.activity_type in STATIONARY_ACTIVITIES:
                logger.info("User is STATIONARY")
                await self.on_motion_change(False)

    def _on_transitions(self, events: list[TransitionEvent]) -> None:
        """Detector callback: handle the batch off the caller's stack"""
        task = asyncio.get_running_loop().create_task(self._handle_safely(events))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _handle_safely(self, events: list[TransitionEvent]) -> None:
        try:
            await self.handle_transitions(events)
        except Exception as e:
            logger.error(f"Error handling activity transitions: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait for transition batches still being handled"""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
