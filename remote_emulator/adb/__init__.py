"""Local device-control adapters (adb and in-memory)."""

from remote_emulator.adb.adb_adapter import AdbCommandAdapter
from remote_emulator.adb.base import DeviceCommandAdapter, DeviceState, PortForward, parse_device_states
from remote_emulator.adb.mock_adapter import MockDeviceAdapter

__all__ = [
    "DeviceCommandAdapter",
    "DeviceState",
    "PortForward",
    "parse_device_states",
    "AdbCommandAdapter",
    "MockDeviceAdapter",
]
