import asyncio

import pytest
import pytest_asyncio

from tracker.common.config import TrackingSettings
from tracker.common.geo import now_ms
from tracker.common.scheduler import WorkScheduler
from tracker.common.state import KeyValueStore
from tracker.services.location.foreground import ForegroundLocationManager
from tracker.services.location.coordinator import LocationTrackingCoordinator
from tracker.services.location.models import Fix, LocationSample, LocationSource
from tracker.services.location.repository import LocationRepository
from tracker.services.location.work_scheduler import LocationWorkScheduler
from tracker.services.location.worker import LocationWorker
from tracker.services.sync.cloud_sync import LocationSync
from tracker.simulator.virtual_device import VirtualDevice


def make_sample(i: int = 0, source: LocationSource = LocationSource.BACKGROUND_WORKER) -> LocationSample:
    return LocationSample(
        latitude=12.97 + i * 0.0001,
        longitude=79.15 + i * 0.0001,
        accuracy=20.0,
        timestamp=1_700_000_000_000 + i * 1000,
        source=source,
        activity_type="STILL",
        battery_level=80,
    )


def make_fix(age_ms: int = 0) -> Fix:
    return Fix(latitude=12.9716, longitude=79.1590, accuracy=15.0, timestamp=now_ms() - age_ms)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll `predicate` until it holds or fail after `timeout`"""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(tmp_path / "state")


@pytest.fixture
def repository(store):
    return LocationRepository(store)


@pytest.fixture
def device():
    return VirtualDevice(seed=42)


@pytest.fixture
def settings():
    # Short timeouts keep the suite fast; intervals stay at their real values
    return TrackingSettings(
        cached_fix_timeout_s=0.2,
        fix_timeout_s=0.2,
        foreground_timeout_s=0.2,
    )


@pytest.fixture
def sync(repository):
    return LocationSync(repository)


@pytest.fixture
def worker(device, repository, sync, settings):
    return LocationWorker(
        device,
        repository,
        sync,
        battery_level=device.get_battery_level,
        settings=settings,
    )


@pytest_asyncio.fixture
async def coordinator(device, repository, sync, worker, settings):
    scheduler = WorkScheduler()
    work_scheduler = LocationWorkScheduler(scheduler, worker.do_work, settings)
    foreground = ForegroundLocationManager(
        device, repository, sync, battery_level=device.get_battery_level, settings=settings
    )
    coordinator = LocationTrackingCoordinator(
        provider=device,
        detector=device,
        repository=repository,
        work_scheduler=work_scheduler,
        foreground=foreground,
        sync=sync,
    )
    yield coordinator
    await coordinator.cleanup()
    scheduler.cancel_all()
