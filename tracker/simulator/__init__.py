"""
Device simulator for running the tracker without a phone.
"""

from .virtual_device import DeviceState, VirtualDevice

__all__ = ["DeviceState", "VirtualDevice"]
