"""
Tracker Service

Composition root for location tracking. Builds every component explicitly
from the configuration and exposes a local control/health HTTP server:
- GET  /health                 - liveness and component status
- GET  /tracking/stats         - tracking snapshot
- POST /tracking/start         - start background tracking
- POST /tracking/stop          - stop background tracking
- POST /tracking/motion        - {"is_moving": bool}
- POST /location/instant       - high-accuracy location now
- POST /lifecycle/foreground   - app came to the foreground
- POST /lifecycle/background   - app went to the background
- POST /sync                   - upload pending locations now
"""

import asyncio
import signal
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

import httpx
import yaml
from aiohttp import web

from tracker.common.config import TrackerConfig, load_tracker_config
from tracker.common.exceptions import StorageError, TrackingUnavailableError
from tracker.common.logging_setup import LogContext, get_service_logger
from tracker.common.scheduler import WorkScheduler
from tracker.common.state import KeyValueStore
from tracker.services.location.coordinator import LocationTrackingCoordinator
from tracker.services.location.foreground import ForegroundLocationManager
from tracker.services.location.repository import LocationRepository
from tracker.services.location.work_scheduler import LocationWorkScheduler
from tracker.services.location.worker import LocationWorker
from tracker.services.sync.backend_client import BackendClient
from tracker.services.sync.cloud_sync import LocationSync
from tracker.services.sync.connectivity import ConnectivityStatusManager
from tracker.services.system.device_status import DeviceStatusCollector
from tracker.simulator.virtual_device import VirtualDevice

logger = get_service_logger("tracker")

CONFIG_PATHS = [
    "/etc/smallbasket/tracker.yaml",
    "tracker.yaml",
]


def find_config_path() -> str:
    """First existing config file, or the system-wide default"""
    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path
    return CONFIG_PATHS[0]


def load_config_file(config_path: str) -> dict:
    """Load configuration from YAML file"""
    try:
        with open(config_path, "r") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config file not found: {config_path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing config: {e}")
        return {}


class TrackerService:
    """
    Location tracking service.

    Owns the store, repository, scheduler, device capabilities, backend
    client, sync, coordinator and connectivity reporting.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        config_path: str | None = None,
        device: VirtualDevice | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if config is None:
            self.config_path = config_path or find_config_path()
            config = load_tracker_config(load_config_file(self.config_path))
        else:
            self.config_path = config_path
        self.config = config

        tracking = config.tracking

        self.store = KeyValueStore(config.state_dir)
        self.repository = LocationRepository(self.store, max_pending=tracking.max_pending)

        # SIMULATED is the only in-process provider
        self.device = device or VirtualDevice(config.simulator)
        self.device_status = DeviceStatusCollector()

        self.backend_client = (
            BackendClient(config.backend, transport=transport)
            if config.backend.enabled
            else None
        )
        self.sync = LocationSync(self.repository, self.backend_client)

        self.scheduler = WorkScheduler()
        self.worker = LocationWorker(
            self.device,
            self.repository,
            self.sync,
            battery_level=self.device.get_battery_level,
            settings=tracking,
        )
        self.work_scheduler = LocationWorkScheduler(
            self.scheduler, self.worker.do_work, tracking
        )
        self.foreground = ForegroundLocationManager(
            self.device,
            self.repository,
            self.sync,
            battery_level=self.device.get_battery_level,
            settings=tracking,
        )
        self.coordinator = LocationTrackingCoordinator(
            provider=self.device,
            detector=self.device,
            repository=self.repository,
            work_scheduler=self.work_scheduler,
            foreground=self.foreground,
            sync=self.sync,
        )

        self.connectivity: ConnectivityStatusManager | None = None
        if self.backend_client is not None and config.connectivity.enabled:
            self.connectivity = ConnectivityStatusManager(
                self.backend_client,
                is_connected=self.device_status.is_connected,
                has_location_permission=self.device.has_location_permission,
                settings=config.connectivity,
            )

        # HTTP server
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

        self._shutdown_event = asyncio.Event()
        self._is_running = False
        self._started_at: datetime | None = None

    async def start(self) -> None:
        """Start tracking components and the HTTP server"""
        logger.info("Starting Tracker Service")

        self._is_running = True
        self._started_at = datetime.now(timezone.utc)
        self._set_service_health("starting", False)

        await self._start_http_server()

        if self.config.start_on_boot:
            with LogContext(logger.logger, device_id=self.config.device_id):
                try:
                    await self.coordinator.start_tracking()
                except TrackingUnavailableError as e:
                    logger.warning(f"Tracking not started: {e.message}")

        if self.connectivity is not None:
            await self.connectivity.start_monitoring()

        self._set_service_health("running", True)
        logger.info(
            "Tracker Service started",
            extra={
                "device_id": self.config.device_id,
                "provider": self.config.provider.value,
                "backend_configured": self.backend_client is not None,
            },
        )

    async def run(self) -> None:
        """Start, wait for a shutdown signal, then stop"""
        await self.start()
        self._setup_signal_handlers()
        try:
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        logger.info("Stopping Tracker Service")

        self._is_running = False

        if self.connectivity is not None:
            await self.connectivity.stop_monitoring()

        await self.coordinator.cleanup()
        self.scheduler.cancel_all()

        await self._stop_http_server()

        if self.backend_client is not None:
            await self.backend_client.close()

        self._set_service_health("stopped", False)
        logger.info("Tracker Service stopped")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self._handle_shutdown())

    def _handle_shutdown(self) -> None:
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    def _set_service_health(self, status: str, is_healthy: bool) -> None:
        try:
            self.store.write("service_health", {
                "service": "tracker",
                "status": status,
                "is_healthy": is_healthy,
            })
        except StorageError as e:
            logger.error(f"Could not record service health: {e}")

    # HTTP server

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/tracking/stats", self._stats_handler)
        app.router.add_post("/tracking/start", self._start_tracking_handler)
        app.router.add_post("/tracking/stop", self._stop_tracking_handler)
        app.router.add_post("/tracking/motion", self._motion_handler)
        app.router.add_post("/location/instant", self._instant_location_handler)
        app.router.add_post("/lifecycle/foreground", self._foreground_handler)
        app.router.add_post("/lifecycle/background", self._background_handler)
        app.router.add_post("/sync", self._sync_handler)
        return app

    async def _start_http_server(self) -> None:
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        server = self.config.server
        site = web.TCPSite(self._runner, server.host, server.port)
        await site.start()

        logger.info(f"HTTP server started on {server.host}:{server.port}")

    async def _stop_http_server(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _health_handler(self, request: web.Request) -> web.Response:
        status = self.device_status.collect()
        uptime = (
            int((datetime.now(timezone.utc) - self._started_at).total_seconds())
            if self._started_at
            else 0
        )

        return web.json_response({
            "status": "healthy" if self._is_running else "unhealthy",
            "service": "tracker",
            "uptime": uptime,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {
                "tracking": "running" if self.coordinator.is_tracking() else "stopped",
                "connectivity": (
                    self.connectivity.get_stats() if self.connectivity else "disabled"
                ),
                "sync": self.sync.get_stats(),
                "scheduler": self.scheduler.get_stats(),
            },
            "device": asdict(status),
        })

    async def _stats_handler(self, request: web.Request) -> web.Response:
        return web.json_response(self.coordinator.get_tracking_stats().to_dict())

    async def _start_tracking_handler(self, request: web.Request) -> web.Response:
        try:
            await self.coordinator.start_tracking()
        except TrackingUnavailableError as e:
            return web.json_response(
                {"success": False, "error": e.message, "recoverable": e.recoverable},
                status=409,
            )
        return web.json_response({"success": True, "tracking": True})

    async def _stop_tracking_handler(self, request: web.Request) -> web.Response:
        await self.coordinator.stop_tracking()
        return web.json_response({"success": True, "tracking": False})

    async def _motion_handler(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except ValueError:
            return web.json_response({"success": False, "error": "Invalid JSON"}, status=400)

        is_moving = body.get("is_moving") if isinstance(body, dict) else None
        if not isinstance(is_moving, bool):
            return web.json_response(
                {"success": False, "error": "is_moving must be a boolean"}, status=400
            )

        await self.coordinator.set_motion_state(is_moving)
        return web.json_response({
            "success": True,
            "is_moving": is_moving,
            "interval_minutes": self.work_scheduler.interval_for(is_moving),
        })

    async def _instant_location_handler(self, request: web.Request) -> web.Response:
        sample = await self.coordinator.get_instant_location()
        if sample is None:
            return web.json_response(
                {"success": False, "error": "Location unavailable"}, status=503
            )
        return web.json_response({"success": True, "location": sample.to_dict()})

    async def _foreground_handler(self, request: web.Request) -> web.Response:
        self.coordinator.handle_app_foreground()
        return web.json_response({"success": True})

    async def _background_handler(self, request: web.Request) -> web.Response:
        self.coordinator.handle_app_background()
        return web.json_response({"success": True})

    async def _sync_handler(self, request: web.Request) -> web.Response:
        result = await self.coordinator.force_sync_locations()
        return web.json_response(asdict(result))
