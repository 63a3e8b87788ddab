"""Adapter base contract for local device-control tooling."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class DeviceState(StrEnum):
    """Connectivity tokens reported by `adb devices`."""

    ONLINE = "device"
    OFFLINE = "offline"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class PortForward:
    """One device-port to host:port mapping requested from the broker."""

    device_port: int
    target_host: str
    target_port: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "devicePort": self.device_port,
            "targetHost": self.target_host,
            "targetPort": self.target_port,
        }


def parse_device_states(output: str) -> dict[str, str]:
    """Parse `adb devices` output into a serial -> state snapshot.

    The first line is the header and is discarded. A serial without a
    state token maps to ``unknown``.
    """
    snapshot: dict[str, str] = {}
    lines = str(output or "").strip().split("\n")[1:]
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        parts = line.split()
        snapshot[parts[0]] = parts[1] if len(parts) > 1 else DeviceState.UNKNOWN.value
    return snapshot


def _to_port(value: Any) -> int:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid port: {value!r}") from e
    if not 0 < port < 65536:
        raise ValueError(f"port out of range: {port}")
    return port


class DeviceCommandAdapter(ABC):
    """Abstract adapter contract used by the session coordinator."""

    name: str = "base"

    @abstractmethod
    async def establish_tunnel(self, remote_address: str) -> None:
        """Connect the local device-control server to a remote device."""

    @abstractmethod
    async def clear_port_forwards(self) -> None:
        """Remove every existing reverse port mapping."""

    @abstractmethod
    async def list_device_states(self) -> dict[str, str]:
        """Return the live serial -> state snapshot."""

    @abstractmethod
    async def read_public_key(self) -> str:
        """Return the local identity key presented to the broker."""

    def request_port_forwards(self, ports: Iterable[Any], target_host: str) -> list[PortForward]:
        """Describe the forwards to request; nothing is run locally."""
        host = str(target_host or "").strip()
        if not host:
            raise ValueError("target_host is required")
        forwards: list[PortForward] = []
        for value in ports:
            port = _to_port(value)
            forwards.append(PortForward(device_port=port, target_host=host, target_port=port))
        if not forwards:
            raise ValueError("at least one port is required")
        return forwards
