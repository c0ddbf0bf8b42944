"""
Configuration Dataclasses

Type-safe configuration structures for the location tracker.
Loaded from the tracker YAML file, with environment overrides for secrets.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .exceptions import ConfigError


class ProviderType(str, Enum):
    """Platform capability providers"""
    SIMULATED = "simulated"


@dataclass
class TrackingSettings:
    """Background polling cadence and queue limits"""
    moving_interval_min: int = 15
    stationary_interval_min: int = 30
    flex_interval_min: int = 5
    retry_backoff_min: int = 10
    cache_max_age_min: int = 10
    cached_fix_timeout_s: float = 1.0
    fix_timeout_s: float = 5.0
    fix_max_update_age_s: float = 60.0
    foreground_timeout_s: float = 3.0
    foreground_max_update_age_s: float = 30.0
    max_pending: int = 100


@dataclass
class BackendSettings:
    """Backend REST API settings"""
    url: str = "https://shopper-zibt.onrender.com/"
    auth_token: str = ""
    timeout_s: float = 60.0
    retry_backoff: list[float] = field(default_factory=lambda: [1.0, 2.0])
    fast_mode: bool = True

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass
class ConnectivitySettings:
    """Reachability reporting cadence"""
    enabled: bool = True
    update_interval_s: int = 300  # 5 minutes
    check_interval_s: int = 30
    error_delay_s: int = 60


@dataclass
class ServerSettings:
    """Local control/health HTTP server"""
    host: str = "127.0.0.1"
    port: int = 8085


@dataclass
class SimulatorSettings:
    """Virtual device settings (used with provider: simulated)"""
    origin_lat: float = 12.9716
    origin_lon: float = 79.1590
    step_m: float = 25.0
    accuracy_m: float = 12.0
    battery_level: int | None = 80


@dataclass
class TrackerConfig:
    """Complete tracker configuration"""
    device_id: str = ""
    state_dir: Path = Path("/var/lib/smallbasket/state")
    provider: ProviderType = ProviderType.SIMULATED
    start_on_boot: bool = True
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    backend: BackendSettings = field(default_factory=BackendSettings)
    connectivity: ConnectivitySettings = field(default_factory=ConnectivitySettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    simulator: SimulatorSettings = field(default_factory=SimulatorSettings)


def load_tracker_config(data: dict | None) -> TrackerConfig:
    """Load TrackerConfig from dictionary (e.g., parsed from YAML)"""
    data = data or {}

    tracker_data = data.get("tracker", {})
    tracking_data = data.get("tracking", {})
    backend_data = data.get("backend", {})
    connectivity_data = data.get("connectivity", {})
    server_data = data.get("server", {})
    simulator_data = data.get("simulator", {})

    tracking = TrackingSettings(
        moving_interval_min=tracking_data.get("moving_interval_min", 15),
        stationary_interval_min=tracking_data.get("stationary_interval_min", 30),
        flex_interval_min=tracking_data.get("flex_interval_min", 5),
        retry_backoff_min=tracking_data.get("retry_backoff_min", 10),
        cache_max_age_min=tracking_data.get("cache_max_age_min", 10),
        cached_fix_timeout_s=tracking_data.get("cached_fix_timeout_s", 1.0),
        fix_timeout_s=tracking_data.get("fix_timeout_s", 5.0),
        fix_max_update_age_s=tracking_data.get("fix_max_update_age_s", 60.0),
        foreground_timeout_s=tracking_data.get("foreground_timeout_s", 3.0),
        foreground_max_update_age_s=tracking_data.get("foreground_max_update_age_s", 30.0),
        max_pending=tracking_data.get("max_pending", 100),
    )

    if tracking.moving_interval_min <= 0 or tracking.stationary_interval_min <= 0:
        raise ConfigError("Polling intervals must be positive", recoverable=False)
    if tracking.max_pending <= 0:
        raise ConfigError("tracking.max_pending must be positive", recoverable=False)

    backend = BackendSettings(
        url=os.environ.get("TRACKER_BACKEND_URL", backend_data.get("url", BackendSettings.url)),
        auth_token=os.environ.get("TRACKER_AUTH_TOKEN", backend_data.get("auth_token", "")),
        timeout_s=backend_data.get("timeout_s", 60.0),
        retry_backoff=list(backend_data.get("retry_backoff", [1.0, 2.0])),
        fast_mode=backend_data.get("fast_mode", True),
    )

    connectivity = ConnectivitySettings(
        enabled=connectivity_data.get("enabled", True),
        update_interval_s=connectivity_data.get("update_interval_s", 300),
        check_interval_s=connectivity_data.get("check_interval_s", 30),
        error_delay_s=connectivity_data.get("error_delay_s", 60),
    )

    server = ServerSettings(
        host=server_data.get("host", "127.0.0.1"),
        port=server_data.get("port", 8085),
    )

    simulator = SimulatorSettings(
        origin_lat=simulator_data.get("origin_lat", 12.9716),
        origin_lon=simulator_data.get("origin_lon", 79.1590),
        step_m=simulator_data.get("step_m", 25.0),
        accuracy_m=simulator_data.get("accuracy_m", 12.0),
        battery_level=simulator_data.get("battery_level", 80),
    )

    try:
        provider = ProviderType(tracker_data.get("provider", "simulated"))
    except ValueError:
        raise ConfigError(
            f"Unknown provider: {tracker_data.get('provider')}", recoverable=False
        )

    state_dir = os.environ.get(
        "TRACKER_STATE_DIR",
        tracker_data.get("state_dir", str(TrackerConfig.state_dir)),
    )

    return TrackerConfig(
        device_id=tracker_data.get("device_id", ""),
        state_dir=Path(state_dir),
        provider=provider,
        start_on_boot=tracker_data.get("start_on_boot", True),
        tracking=tracking,
        backend=backend,
        connectivity=connectivity,
        server=server,
        simulator=simulator,
    )
