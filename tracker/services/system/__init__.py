"""
System Service - Device Status

Responsibilities:
- Battery level for location samples
- Network connectivity for reachability reports
"""

from .device_status import DeviceStatusCollector, DeviceStatus

__all__ = ["DeviceStatusCollector", "DeviceStatus"]
