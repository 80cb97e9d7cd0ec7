"""Local device data collectors."""

from .device_collector import DeviceIdentityCollector

__all__ = ["DeviceIdentityCollector"]
