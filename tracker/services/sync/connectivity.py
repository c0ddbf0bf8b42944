"""
Connectivity Status Manager

Reports connectivity and location-permission state to the backend, which
marks the user reachable when both are true. Updates are sent:
- Immediately when monitoring starts
- Every 5 minutes while monitoring
- As soon as the connected state flips (network available / lost)
"""

import asyncio
import time
from typing import Callable

from tracker.common.config import ConnectivitySettings
from tracker.common.exceptions import BackendError
from tracker.common.logging_setup import get_service_logger

from .backend_client import BackendClient

logger = get_service_logger("sync.connectivity")


class ConnectivityStatusManager:
    """Keeps the backend's reachability flag for this user current"""

    def __init__(
        self,
        client: BackendClient,
        is_connected: Callable[[], bool],
        has_location_permission: Callable[[], bool],
        settings: ConnectivitySettings | None = None,
    ):
        self.client = client
        self.is_connected = is_connected
        self.has_location_permission = has_location_permission
        self.settings = settings or ConnectivitySettings()

        self._running = False
        self._task: asyncio.Task | None = None
        self._last_update_time: float = 0
        self._last_connected: bool | None = None
        self._last_reachable: bool | None = None
        self._update_count = 0
        self._error_count = 0

    async def start_monitoring(self) -> None:
        if self._running:
            logger.debug("Already monitoring")
            return

        self._running = True
        logger.info("Starting connectivity monitoring")
        self._task = asyncio.create_task(self._monitor_loop())

    async def stop_monitoring(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Stopped connectivity monitoring")

    async def force_update(self) -> bool:
        logger.debug("Force updating connectivity status")
        return await self._update_connectivity_status()

    async def _monitor_loop(self) -> None:
        await self._update_connectivity_status()

        while self._running:
            try:
                await asyncio.sleep(self.settings.check_interval_s)

                connected = self._check_internet_connectivity()
                changed = self._last_connected is not None and connected != self._last_connected
                due = time.time() - self._last_update_time >= self.settings.update_interval_s

                if changed:
                    logger.debug(f"Network {'available' if connected else 'lost'}")
                if changed or due:
                    await self._update_connectivity_status()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in periodic connectivity update: {e}")
                await asyncio.sleep(self.settings.error_delay_s)

    async def _update_connectivity_status(self) -> bool:
        """
        Push the current state to the backend.

        Returns:
            True if the backend accepted the update
        """
        is_connected = self._check_internet_connectivity()
        has_permission = self._check_location_permission()
        self._last_connected = is_connected
        self._last_update_time = time.time()

        logger.debug(
            f"Updating connectivity status: connected={is_connected}, "
            f"location_permission={has_permission}, "
            f"will be reachable={is_connected and has_permission}"
        )

        try:
            response = await self.client.update_connectivity(is_connected, has_permission)
        except BackendError as e:
            self._error_count += 1
            logger.error(f"Failed to update connectivity: {e.message}")
            return False

        data = response.data or {}
        self._last_reachable = data.get("is_reachable")
        self._update_count += 1
        logger.info(
            f"Connectivity updated on backend (is_reachable={data.get('is_reachable')})",
            extra={
                "is_reachable": data.get("is_reachable"),
                "is_connected": data.get("is_connected"),
                "location_permission_granted": data.get("location_permission_granted"),
            },
        )
        return response.success

    def _check_internet_connectivity(self) -> bool:
        try:
            return bool(self.is_connected())
        except Exception as e:
            logger.error(f"Error checking internet connectivity: {e}")
            return False

    def _check_location_permission(self) -> bool:
        try:
            return bool(self.has_location_permission())
        except Exception as e:
            logger.error(f"Error checking location permission: {e}")
            return False

    def get_stats(self) -> dict:
        return {
            "monitoring": self._running,
            "update_count": self._update_count,
            "error_count": self._error_count,
            "last_connected": self._last_connected,
            "last_reachable": self._last_reachable,
        }
