from unittest.mock import AsyncMock

import pytest

from tracker.services.location.activity import ActivityRecognitionManager
from tracker.services.location.models import (
    ActivityTransition,
    ActivityType,
    TransitionEvent,
    TransitionType,
)


@pytest.fixture
def on_motion_change():
    return AsyncMock()


@pytest.fixture
def manager(device, on_motion_change):
    return ActivityRecognitionManager(device, on_motion_change)


def test_transition_request_covers_enter_events():
    request = ActivityRecognitionManager.build_transition_request()

    assert set(request) == {
        ActivityTransition(ActivityType.WALKING, TransitionType.ENTER),
        ActivityTransition(ActivityType.RUNNING, TransitionType.ENTER),
        ActivityTransition(ActivityType.ON_BICYCLE, TransitionType.ENTER),
        ActivityTransition(ActivityType.STILL, TransitionType.ENTER),
    }


def test_activity_names():
    assert ActivityRecognitionManager.get_activity_name(7) == "WALKING"
    assert ActivityRecognitionManager.get_activity_name(3) == "STILL"
    assert ActivityRecognitionManager.get_activity_name(99) == "UNKNOWN"


@pytest.mark.asyncio
async def test_moving_and_still_enter_events(manager, on_motion_change):
    await manager.handle_transitions([
        TransitionEvent(ActivityType.RUNNING, TransitionType.ENTER),
        TransitionEvent(ActivityType.STILL, TransitionType.ENTER),
    ])

    assert [c.args[0] for c in on_motion_change.await_args_list] == [True, False]


@pytest.mark.asyncio
async def test_exit_and_other_activities_are_ignored(manager, on_motion_change):
    await manager.handle_transitions([
        TransitionEvent(ActivityType.WALKING, TransitionType.EXIT),
        TransitionEvent(ActivityType.IN_VEHICLE, TransitionType.ENTER),
        TransitionEvent(ActivityType.TILTING, TransitionType.ENTER),
    ])

    on_motion_change.assert_not_awaited()


@pytest.mark.asyncio
async def test_detector_events_reach_callback(manager, device, on_motion_change):
    assert await manager.start_monitoring()
    assert manager.is_monitoring

    assert device.emit_transition(ActivityType.WALKING)
    await manager.drain()

    on_motion_change.assert_awaited_once_with(True)


@pytest.mark.asyncio
async def test_stop_monitoring_unsubscribes(manager, device, on_motion_change):
    await manager.start_monitoring()
    await manager.stop_monitoring()

    assert not manager.is_monitoring
    assert not device.emit_transition(ActivityType.WALKING)
    on_motion_change.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_without_permission(manager, device):
    device.set_activity_permission(False)

    assert await manager.start_monitoring() is False
    assert not device.is_subscribed


@pytest.mark.asyncio
async def test_callback_errors_are_contained(device):
    failing = AsyncMock(side_effect=RuntimeError("boom"))
    manager = ActivityRecognitionManager(device, failing)
    await manager.start_monitoring()

    device.emit_transition(ActivityType.STILL)
    await manager.drain()

    failing.assert_awaited_once_with(False)
