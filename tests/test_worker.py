import httpx
import pytest

from conftest import make_fix
from tracker.common.config import BackendSettings
from tracker.common.scheduler import WorkStatus
from tracker.services.location.models import LocationSource
from tracker.services.location.repository import KEY_LAST_LOCATION, KEY_PENDING_LOCATIONS
from tracker.services.location.worker import LocationWorker
from tracker.services.sync.backend_client import BackendClient
from tracker.services.sync.cloud_sync import LocationSync


@pytest.fixture
def tracking_on(repository):
    repository.set_tracking_enabled(True)


@pytest.mark.asyncio
async def test_tracking_disabled_is_a_no_op(worker, device, repository):
    result = await worker.do_work()

    assert result.status == WorkStatus.SUCCESS
    assert device.fix_request_count == 0
    assert repository.get_pending_count() == 0


@pytest.mark.asyncio
async def test_fresh_cache_skips_hardware_fix(worker, device, repository, tracking_on):
    device.set_last_fix(make_fix(age_ms=2 * 60 * 1000))

    result = await worker.do_work()

    assert result.status == WorkStatus.SUCCESS
    assert device.fix_request_count == 0
    pending = repository.get_pending_locations()
    assert len(pending) == 1
    assert pending[0].source == LocationSource.BACKGROUND_WORKER


@pytest.mark.asyncio
async def test_stale_cache_requests_new_fix(worker, device, repository, tracking_on):
    stale = make_fix(age_ms=11 * 60 * 1000)
    device.set_last_fix(stale)

    result = await worker.do_work()

    assert result.status == WorkStatus.SUCCESS
    assert device.fix_request_count == 1
    assert repository.get_last_location().timestamp > stale.timestamp


@pytest.mark.asyncio
async def test_missing_permission_fails_without_writing(worker, device, store, tracking_on):
    device.set_location_permission(False)

    result = await worker.do_work()

    assert result.status == WorkStatus.FAILURE
    assert not result.is_retryable
    assert store.read_fresh(KEY_PENDING_LOCATIONS) == {}
    assert store.read_fresh(KEY_LAST_LOCATION) == {}


@pytest.mark.asyncio
async def test_service_disabled_asks_for_retry(worker, device, repository, tracking_on):
    device.set_location_enabled(False)

    result = await worker.do_work()

    assert result.status == WorkStatus.RETRY
    assert repository.get_pending_count() == 0


@pytest.mark.asyncio
async def test_fix_timeout_produces_no_sample(worker, device, repository, tracking_on):
    device.set_fix_delay(1.0)

    result = await worker.do_work()

    assert result.status == WorkStatus.NO_SAMPLE
    assert repository.get_pending_count() == 0


@pytest.mark.asyncio
async def test_no_fix_available_produces_no_sample(worker, device, repository, tracking_on):
    device.set_fix_available(False)

    result = await worker.do_work()

    assert result.status == WorkStatus.NO_SAMPLE
    assert repository.get_pending_count() == 0


@pytest.mark.asyncio
async def test_sample_records_motion_and_battery(worker, device, repository, tracking_on):
    repository.save_activity_state(True)
    device.set_battery_level(55)

    await worker.do_work()

    sample = repository.get_last_location()
    assert sample.activity_type == "MOVING"
    assert sample.battery_level == 55


@pytest.mark.asyncio
async def test_failed_sync_keeps_sample_and_retries(device, repository, settings, tracking_on):
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="down"))
    client = BackendClient(
        BackendSettings(url="https://api.test/", retry_backoff=[]),
        transport=transport,
    )
    worker = LocationWorker(device, repository, LocationSync(repository, client), settings=settings)

    result = await worker.do_work()

    assert result.status == WorkStatus.RETRY
    assert repository.get_pending_count() == 1
    await client.close()
