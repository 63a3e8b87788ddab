"""Broker API client and response models."""

from remote_emulator.broker.client import DEFAULT_BASE_URL, BrokerClient
from remote_emulator.broker.models import (
    Acknowledgement,
    ConnectedDevices,
    Registration,
    RequestOutcome,
    Unrecognized,
    parse_acknowledgement,
    parse_connected_devices,
    parse_registration,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "BrokerClient",
    "RequestOutcome",
    "Registration",
    "Acknowledgement",
    "ConnectedDevices",
    "Unrecognized",
    "parse_registration",
    "parse_acknowledgement",
    "parse_connected_devices",
]
