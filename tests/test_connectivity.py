from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import wait_until
from tracker.common.config import ConnectivitySettings
from tracker.common.exceptions import BackendError
from tracker.services.sync.backend_client import SuccessResponse
from tracker.services.sync.connectivity import ConnectivityStatusManager


def reachable_response(reachable: bool = True) -> SuccessResponse:
    return SuccessResponse(
        success=True,
        message="Connectivity updated",
        data={"is_reachable": reachable},
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.update_connectivity = AsyncMock(return_value=reachable_response())
    return client


@pytest.mark.asyncio
async def test_force_update_reports_state(client):
    manager = ConnectivityStatusManager(client, lambda: True, lambda: False)

    assert await manager.force_update() is True

    client.update_connectivity.assert_awaited_once_with(True, False)
    assert manager.get_stats()["update_count"] == 1
    assert manager.get_stats()["last_reachable"] is True


@pytest.mark.asyncio
async def test_backend_error_is_logged_not_raised(client):
    client.update_connectivity.side_effect = BackendError("HTTP 500")
    manager = ConnectivityStatusManager(client, lambda: True, lambda: True)

    assert await manager.force_update() is False
    assert manager.get_stats()["error_count"] == 1


@pytest.mark.asyncio
async def test_failing_connection_check_counts_as_disconnected(client):
    def broken_check():
        raise OSError("no interfaces")

    manager = ConnectivityStatusManager(client, broken_check, lambda: True)
    await manager.force_update()

    client.update_connectivity.assert_awaited_once_with(False, True)


@pytest.mark.asyncio
async def test_monitoring_reports_network_changes(client):
    state = {"connected": True}
    settings = ConnectivitySettings(update_interval_s=3600, check_interval_s=0.02, error_delay_s=0.02)
    manager = ConnectivityStatusManager(client, lambda: state["connected"], lambda: True, settings)

    await manager.start_monitoring()
    await wait_until(lambda: client.update_connectivity.await_count == 1)

    state["connected"] = False
    await wait_until(lambda: client.update_connectivity.await_count == 2)
    await manager.stop_monitoring()

    assert client.update_connectivity.await_args_list[-1].args == (False, True)
    assert not manager.get_stats()["monitoring"]
