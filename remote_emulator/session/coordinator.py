"""Registration, teardown and port forwarding for one remote device session."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from enum import StrEnum
from typing import Any, Awaitable, Callable

from loguru import logger

from remote_emulator.adb.base import DeviceCommandAdapter
from remote_emulator.broker.client import BrokerClient
from remote_emulator.broker.models import (
    Acknowledgement,
    ConnectedDevices,
    Registration,
    RequestOutcome,
    parse_acknowledgement,
    parse_connected_devices,
    parse_registration,
)
from remote_emulator.errors import PersistenceError, SessionNotFoundError
from remote_emulator.storage.session_store import SessionRecord, SessionStore
from remote_emulator.utils.redaction import redact_secrets

Sleeper = Callable[[float], Awaitable[Any]]

DEFAULT_ATTEMPTS = 5
DEFAULT_DELAY_MS = 2000


class RegistrationState(StrEnum):
    """Progress of one `try_register` run."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    REGISTERED = "registered"
    EXHAUSTED = "exhausted"


class SessionCoordinator:
    """Sequences broker, adapter and store calls for the session lifecycle.

    Only registration is retried. Every other operation runs once and
    returns the broker outcome for the caller to report.
    """

    def __init__(
        self,
        *,
        broker: BrokerClient,
        adapter: DeviceCommandAdapter,
        store: SessionStore,
        attempts: int = DEFAULT_ATTEMPTS,
        delay_ms: int = DEFAULT_DELAY_MS,
        sleep: Sleeper | None = None,
    ) -> None:
        self.broker = broker
        self.adapter = adapter
        self.store = store
        self.attempts = max(1, int(attempts))
        self.delay_ms = max(0, int(delay_ms))
        self._sleep = sleep or asyncio.sleep
        self.state = RegistrationState.IDLE
        self.last_registration: Registration | None = None

    @classmethod
    def from_config(
        cls,
        config: Any,
        *,
        broker: BrokerClient,
        adapter: DeviceCommandAdapter,
        store: SessionStore,
        sleep: Sleeper | None = None,
    ) -> "SessionCoordinator":
        return cls(
            broker=broker,
            adapter=adapter,
            store=store,
            attempts=config.retry.attempts,
            delay_ms=config.retry.delay_ms,
            sleep=sleep,
        )

    async def try_register(
        self,
        attempts: int | None = None,
        trace_request_id: str | None = None,
    ) -> bool:
        """Register with the broker, retrying failed attempts after a fixed delay."""
        total = max(1, int(attempts if attempts is not None else self.attempts))
        adb_key = await self.adapter.read_public_key()
        self.state = RegistrationState.ATTEMPTING
        self.last_registration = None
        for attempt in range(1, total + 1):
            registration = await self._register_once(adb_key, trace_request_id, attempt, total)
            if registration is not None:
                await self._activate(registration)
                self.state = RegistrationState.REGISTERED
                self.last_registration = registration
                return True
            if attempt < total:
                await self._sleep(self.delay_ms / 1000)
        self.state = RegistrationState.EXHAUSTED
        logger.warning(f"Registration gave up after {total} attempt(s)")
        return False

    async def disconnect(self, device_id: str | None = None) -> RequestOutcome:
        device = await self._resolve_device_id(device_id)
        logger.info(f"disconnect {device}")
        outcome = await self.broker.deregister(device)
        _report(outcome, "disconnect device successfully", "disconnect fail")
        return outcome

    async def disconnect_by_trace_request_id(self, trace_request_id: str | None) -> RequestOutcome:
        try:
            record = await self.store.load_full_record()
        except (SessionNotFoundError, PersistenceError) as e:
            logger.warning(f"No usable stored session, reconciling without it: {e}")
            record = SessionRecord()

        adb_state = await self.adapter.list_device_states()
        # Looked up by connect address, not serial; misses unless adb reports the address as serial.
        device_status = adb_state.get(record.remote_connect_address or "")
        logger.info(
            f"disconnectByTraceRequestId trace={trace_request_id} "
            f"adbState={adb_state} deviceStatus={device_status}"
        )
        outcome = await self.broker.deregister_by_trace(trace_request_id, adb_state, device_status)
        _report(outcome, "disconnect device successfully", "disconnect fail")
        return outcome

    async def forward_ports(
        self,
        ports: Iterable[Any],
        target_host: str,
        device_id: str | None = None,
    ) -> RequestOutcome:
        forwards = self.adapter.request_port_forwards(ports, target_host)
        device = await self._resolve_device_id(device_id)
        logger.info(f"forwardPorts {device} {target_host} {[item.device_port for item in forwards]}")
        await self.adapter.clear_port_forwards()
        outcome = await self.broker.forward_ports(device, forwards)
        _report(outcome, "forward port successfully", "forward port fail")
        return outcome

    async def list_connected(self) -> RequestOutcome:
        outcome = await self.broker.list_connected()
        parsed = parse_connected_devices(outcome)
        if isinstance(parsed, ConnectedDevices):
            logger.info(f"broker reports {len(parsed.devices)} connected device(s)")
        else:
            logger.warning(f"get device fail ({parsed.reason}): {parsed.payload}")
        return outcome

    async def _register_once(
        self,
        adb_key: str,
        trace_request_id: str | None,
        attempt: int,
        total: int,
    ) -> Registration | None:
        logger.info(f"connect attempt {attempt}/{total} trace={trace_request_id}")
        outcome = await self.broker.register(adb_key, trace_request_id)
        parsed = parse_registration(outcome)
        if isinstance(parsed, Registration):
            logger.info(f"connect server emulator ok: {redact_secrets(parsed.payload)}")
            return parsed
        logger.warning(f"connect server emulator fail ({parsed.reason}): {parsed.payload}")
        return None

    async def _activate(self, registration: Registration) -> None:
        await self.adapter.establish_tunnel(registration.remote_connect_url)
        record = SessionRecord.from_registration(registration.payload)
        try:
            await self.store.save(record)
        except PersistenceError as e:
            logger.error(f"Failed to persist session for {record.device_id}: {e}")

    async def _resolve_device_id(self, device_id: str | None) -> str:
        explicit = str(device_id or "").strip()
        if explicit:
            return explicit
        return await self.store.load_device_identifier()


def _report(outcome: RequestOutcome, success: str, failure: str) -> None:
    parsed = parse_acknowledgement(outcome)
    if isinstance(parsed, Acknowledgement):
        logger.info(f"{success}: {parsed.payload}")
    else:
        logger.warning(f"{failure}: {parsed.payload}")
