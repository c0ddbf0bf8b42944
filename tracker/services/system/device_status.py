"""
Device Status Collector

Collects device state attached to location samples and connectivity reports:
- Battery level
- Internet connectivity (any non-loopback interface up)
- Uptime
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone

import psutil

from tracker.common.logging_setup import get_service_logger

logger = get_service_logger("system.device_status")


@dataclass
class DeviceStatus:
    """Device status snapshot"""
    battery_level: int | None
    power_plugged: bool | None
    is_connected: bool
    uptime_seconds: int
    timestamp: str


class DeviceStatusCollector:
    """Collects device status via psutil"""

    def __init__(self):
        self._start_time = time.time()

    def collect(self) -> DeviceStatus:
        battery = self._read_battery()
        return DeviceStatus(
            battery_level=int(battery.percent) if battery else None,
            power_plugged=battery.power_plugged if battery else None,
            is_connected=self.is_connected(),
            uptime_seconds=int(time.time() - self._start_time),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def get_battery_level(self) -> int | None:
        """Battery percentage, or None when the device has no battery"""
        battery = self._read_battery()
        return int(battery.percent) if battery else None

    def is_connected(self) -> bool:
        """True when at least one non-loopback interface is up"""
        try:
            stats = psutil.net_if_stats()
        except (OSError, RuntimeError) as e:
            logger.error(f"Error checking network interfaces: {e}")
            return False

        for name, iface in stats.items():
            if name == "lo" or name.startswith("lo"):
                continue
            if iface.isup:
                return True
        return False

    def _read_battery(self):
        try:
            return psutil.sensors_battery()
        except (AttributeError, OSError, RuntimeError) as e:
            # Not implemented on some platforms
            logger.debug(f"Battery level unavailable: {e}")
            return None
