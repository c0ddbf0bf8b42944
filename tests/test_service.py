import httpx
import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from conftest import wait_until
from tracker.common.config import BackendSettings, TrackerConfig
from tracker.services.tracker.service import TrackerService
from tracker.simulator.virtual_device import VirtualDevice


@pytest.fixture
def service(tmp_path):
    config = TrackerConfig(
        device_id="test-device",
        state_dir=tmp_path / "state",
        start_on_boot=False,
        backend=BackendSettings(url=""),
    )
    return TrackerService(config=config, device=VirtualDevice(seed=7))


@pytest_asyncio.fixture
async def client(service):
    async with TestClient(TestServer(service.create_app())) as client:
        yield client
    await service.coordinator.cleanup()
    service.scheduler.cancel_all()


def test_service_wires_components(service):
    assert service.backend_client is None
    assert service.connectivity is None
    assert service.coordinator.repository is service.repository
    assert service.worker.sync is service.sync


def test_backend_enables_connectivity(tmp_path):
    config = TrackerConfig(
        state_dir=tmp_path,
        backend=BackendSettings(url="https://api.test/"),
    )
    service = TrackerService(
        config=config,
        device=VirtualDevice(),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"success": True})),
    )

    assert service.backend_client is not None
    assert service.connectivity is not None


def test_loads_config_from_file(tmp_path):
    config_file = tmp_path / "tracker.yaml"
    config_file.write_text(
        "tracker:\n"
        f"  state_dir: {tmp_path / 'state'}\n"
        "tracking:\n"
        "  moving_interval_min: 10\n"
        "backend:\n"
        "  url: ''\n"
    )

    service = TrackerService(config_path=str(config_file), device=VirtualDevice())

    assert service.config.tracking.moving_interval_min == 10
    assert service.work_scheduler.interval_for(True) == 10


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    body = await response.json()

    assert response.status == 200
    assert body["service"] == "tracker"
    assert body["components"]["tracking"] == "stopped"
    assert body["components"]["connectivity"] == "disabled"
    assert "is_connected" in body["device"]


@pytest.mark.asyncio
async def test_tracking_lifecycle_over_http(client, service):
    response = await client.post("/tracking/start")
    assert response.status == 200

    stats = await (await client.get("/tracking/stats")).json()
    assert stats["is_tracking_enabled"] is True
    assert stats["current_interval"] == "30 minutes"

    response = await client.post("/tracking/motion", json={"is_moving": True})
    body = await response.json()
    assert body["interval_minutes"] == 15
    assert service.work_scheduler.current_interval_minutes() == 15

    response = await client.post("/tracking/stop")
    assert response.status == 200
    assert not service.coordinator.is_tracking()


@pytest.mark.asyncio
async def test_start_without_permission_conflicts(client, service):
    service.device.set_location_permission(False)

    response = await client.post("/tracking/start")
    body = await response.json()

    assert response.status == 409
    assert body["recoverable"] is False


@pytest.mark.asyncio
async def test_motion_requires_boolean(client):
    response = await client.post("/tracking/motion", json={"is_moving": "yes"})
    assert response.status == 400

    response = await client.post("/tracking/motion", data="not json")
    assert response.status == 400


@pytest.mark.asyncio
async def test_instant_location_and_sync(client, service):
    response = await client.post("/location/instant")
    body = await response.json()

    assert response.status == 200
    assert body["location"]["source"] == "FOREGROUND"

    result = await (await client.post("/sync")).json()
    assert result["success"] is True
    assert result["remaining"] == 1


@pytest.mark.asyncio
async def test_instant_location_unavailable(client, service):
    service.device.set_location_enabled(False)

    response = await client.post("/location/instant")

    assert response.status == 503


@pytest.mark.asyncio
async def test_lifecycle_endpoints(client, service):
    await client.post("/tracking/start")
    loop = service.scheduler.get_loop("location_tracking_work")
    await wait_until(lambda: loop.execution_count >= 1)
    before = service.repository.get_pending_count()

    assert (await client.post("/lifecycle/background")).status == 200
    assert (await client.post("/lifecycle/foreground")).status == 200

    await wait_until(lambda: service.repository.get_pending_count() == before + 1)
