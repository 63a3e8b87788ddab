"""Recognized broker response shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple


class RequestOutcome(NamedTuple):
    """Decoded payload (or error description) and whether the call succeeded."""

    payload: Any
    ok: bool


@dataclass(slots=True, frozen=True)
class Registration:
    """Successful `/devices/connect` response."""

    remote_connect_url: str
    device_id: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Acknowledgement:
    """Successful response whose body carries no fields we act on."""

    payload: Any = None


@dataclass(slots=True, frozen=True)
class ConnectedDevices:
    """Successful `/devices/connected` response."""

    devices: list[Any] = field(default_factory=list)
    payload: Any = None


@dataclass(slots=True, frozen=True)
class Unrecognized:
    """Failed call, or a success body that does not have the expected shape."""

    payload: Any = None
    reason: str = ""


def parse_registration(outcome: RequestOutcome) -> Registration | Unrecognized:
    payload, ok = outcome
    if not ok:
        return Unrecognized(payload=payload, reason="request failed")
    if not isinstance(payload, dict):
        return Unrecognized(payload=payload, reason="response is not an object")
    url = str(payload.get("remoteConnectUrl") or "").strip()
    if not url:
        return Unrecognized(payload=payload, reason="remoteConnectUrl missing")
    return Registration(
        remote_connect_url=url,
        device_id=str(payload.get("deviceId") or "").strip(),
        payload=dict(payload),
    )


def parse_acknowledgement(outcome: RequestOutcome) -> Acknowledgement | Unrecognized:
    payload, ok = outcome
    if not ok:
        return Unrecognized(payload=payload, reason="request failed")
    return Acknowledgement(payload=payload)


def parse_connected_devices(outcome: RequestOutcome) -> ConnectedDevices | Unrecognized:
    payload, ok = outcome
    if not ok:
        return Unrecognized(payload=payload, reason="request failed")
    if isinstance(payload, list):
        return ConnectedDevices(devices=list(payload), payload=payload)
    if isinstance(payload, dict):
        for key in ("devices", "data", "items"):
            items = payload.get(key)
            if isinstance(items, list):
                return ConnectedDevices(devices=list(items), payload=payload)
    return Unrecognized(payload=payload, reason="device list missing")
