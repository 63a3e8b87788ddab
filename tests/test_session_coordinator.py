from __future__ import annotations

from typing import Any

import pytest

from remote_emulator.adb import MockDeviceAdapter
from remote_emulator.adb.base import PortForward
from remote_emulator.broker import RequestOutcome
from remote_emulator.errors import AdapterExecutionError, PersistenceError, SessionNotFoundError
from remote_emulator.session import RegistrationState, SessionCoordinator
from remote_emulator.storage import InMemorySessionStore, SessionRecord

_GOOD = RequestOutcome(
    {"remoteConnectUrl": "relay.example.com:40001", "deviceId": "dev-1", "slot": 7}, True
)


class _FakeBroker:
    def __init__(self, register_outcomes: list[RequestOutcome] | None = None) -> None:
        self.register_outcomes = list(register_outcomes or [])
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def register(self, adb_key: str, trace_request_id: str | None = None) -> RequestOutcome:
        self.calls.append(("register", {"adbKey": adb_key, "traceRequestId": trace_request_id}))
        if self.register_outcomes:
            return self.register_outcomes.pop(0)
        return RequestOutcome({"message": "busy"}, False)

    async def deregister(self, device_id: str) -> RequestOutcome:
        self.calls.append(("deregister", {"deviceId": device_id}))
        return RequestOutcome({"released": True}, True)

    async def deregister_by_trace(
        self,
        trace_request_id: str | None,
        adb_state: dict[str, str],
        device_status: str | None = None,
    ) -> RequestOutcome:
        body: dict[str, Any] = {"traceRequestId": trace_request_id, "adbState": dict(adb_state)}
        if device_status is not None:
            body["deviceStatus"] = device_status
        self.calls.append(("deregister_by_trace", body))
        return RequestOutcome({"released": 1}, True)

    async def forward_ports(self, device_id: str, forwards: list[PortForward]) -> RequestOutcome:
        self.calls.append(
            ("forward_ports", {"deviceId": device_id, "ports": [item.to_dict() for item in forwards]})
        )
        return RequestOutcome({}, True)

    async def list_connected(self) -> RequestOutcome:
        self.calls.append(("list_connected", {}))
        return RequestOutcome([], True)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class _FailingStore(InMemorySessionStore):
    async def save(self, record: SessionRecord) -> None:
        raise PersistenceError("disk full")

    async def load_full_record(self) -> SessionRecord:
        raise PersistenceError("corrupt")


class _Sleeps:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _coordinator(
    broker: _FakeBroker,
    *,
    adapter: MockDeviceAdapter | None = None,
    store: InMemorySessionStore | None = None,
    sleeps: _Sleeps | None = None,
) -> SessionCoordinator:
    return SessionCoordinator(
        broker=broker,  # type: ignore[arg-type]
        adapter=adapter or MockDeviceAdapter(),
        store=store if store is not None else InMemorySessionStore(),
        attempts=5,
        delay_ms=2000,
        sleep=sleeps or _Sleeps(),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("attempts", [1, 2, 5])
async def test_register_succeeds_on_last_attempt(attempts: int) -> None:
    failures = [RequestOutcome("No response received", False)] * (attempts - 1)
    broker = _FakeBroker([*failures, _GOOD])
    adapter = MockDeviceAdapter(public_key="PUBKEY")
    store = InMemorySessionStore()
    sleeps = _Sleeps()
    coordinator = _coordinator(broker, adapter=adapter, store=store, sleeps=sleeps)

    assert await coordinator.try_register(attempts, "trace-1") is True

    assert broker.count("register") == attempts
    assert sleeps.delays == [2.0] * (attempts - 1)
    assert broker.calls[0][1] == {"adbKey": "PUBKEY", "traceRequestId": "trace-1"}
    assert adapter.calls == [("connect", "relay.example.com:40001")]
    assert store.record is not None
    assert store.record.device_id == "dev-1"
    assert store.record.registration_payload["slot"] == 7
    assert coordinator.state == RegistrationState.REGISTERED


@pytest.mark.asyncio
async def test_register_exhausted_makes_no_tunnel_or_save() -> None:
    broker = _FakeBroker()
    adapter = MockDeviceAdapter()
    store = InMemorySessionStore()
    coordinator = _coordinator(broker, adapter=adapter, store=store)

    assert await coordinator.try_register(3) is False

    assert broker.count("register") == 3
    assert adapter.calls == []
    assert store.saves == 0
    assert coordinator.state == RegistrationState.EXHAUSTED


@pytest.mark.asyncio
async def test_register_retries_when_connect_address_missing() -> None:
    broker = _FakeBroker([RequestOutcome({"deviceId": "dev-1"}, True), _GOOD])
    sleeps = _Sleeps()
    coordinator = _coordinator(broker, sleeps=sleeps)

    assert await coordinator.try_register() is True
    assert broker.count("register") == 2
    assert len(sleeps.delays) == 1


@pytest.mark.asyncio
async def test_register_uses_configured_attempts_by_default() -> None:
    broker = _FakeBroker()
    sleeps = _Sleeps()

    assert await _coordinator(broker, sleeps=sleeps).try_register() is False
    assert broker.count("register") == 5
    assert len(sleeps.delays) == 4


@pytest.mark.asyncio
async def test_tunnel_failure_propagates_and_skips_save() -> None:
    broker = _FakeBroker([_GOOD])
    store = InMemorySessionStore()
    coordinator = _coordinator(broker, adapter=MockDeviceAdapter(fail_connect=True), store=store)

    with pytest.raises(AdapterExecutionError):
        await coordinator.try_register()

    assert broker.count("register") == 1
    assert store.saves == 0


@pytest.mark.asyncio
async def test_persistence_failure_is_tolerated() -> None:
    broker = _FakeBroker([_GOOD])
    adapter = MockDeviceAdapter()

    assert await _coordinator(broker, adapter=adapter, store=_FailingStore()).try_register() is True
    assert adapter.calls == [("connect", "relay.example.com:40001")]


@pytest.mark.asyncio
async def test_teardown_without_stored_session_still_reconciles() -> None:
    broker = _FakeBroker()
    adapter = MockDeviceAdapter(states={"emulator-5554": "device"})
    coordinator = _coordinator(broker, adapter=adapter, store=InMemorySessionStore())

    outcome = await coordinator.disconnect_by_trace_request_id("trace-9")

    assert outcome.ok is True
    assert broker.calls == [
        ("deregister_by_trace", {"traceRequestId": "trace-9", "adbState": {"emulator-5554": "device"}})
    ]


@pytest.mark.asyncio
async def test_teardown_tolerates_corrupt_store() -> None:
    broker = _FakeBroker()
    coordinator = _coordinator(broker, store=_FailingStore())

    await coordinator.disconnect_by_trace_request_id("trace-9")

    assert broker.count("deregister_by_trace") == 1


@pytest.mark.asyncio
async def test_teardown_status_lookup_keys_on_connect_address() -> None:
    # Status is looked up by the stored connect address, which adb rarely uses as serial.
    record = SessionRecord.from_registration(_GOOD.payload)
    broker = _FakeBroker()
    adapter = MockDeviceAdapter(states={"emulator-5554": "device"})
    coordinator = _coordinator(broker, adapter=adapter, store=InMemorySessionStore(record))

    await coordinator.disconnect_by_trace_request_id("trace-1")

    body = broker.calls[0][1]
    assert body["adbState"] == {"emulator-5554": "device"}
    assert "deviceStatus" not in body

    adapter.states["relay.example.com:40001"] = "offline"
    await coordinator.disconnect_by_trace_request_id("trace-1")

    assert broker.calls[1][1]["deviceStatus"] == "offline"


@pytest.mark.asyncio
async def test_forward_ports_clears_then_sends_one_batch() -> None:
    broker = _FakeBroker()
    adapter = MockDeviceAdapter()
    coordinator = _coordinator(broker, adapter=adapter)

    await coordinator.forward_ports([8080, 9000], "10.0.0.5", device_id="dev-1")

    assert adapter.calls == [("reverse", "--remove-all")]
    assert broker.calls == [
        (
            "forward_ports",
            {
                "deviceId": "dev-1",
                "ports": [
                    {"devicePort": 8080, "targetHost": "10.0.0.5", "targetPort": 8080},
                    {"devicePort": 9000, "targetHost": "10.0.0.5", "targetPort": 9000},
                ],
            },
        )
    ]


@pytest.mark.asyncio
async def test_disconnect_uses_stored_device_id() -> None:
    broker = _FakeBroker()
    store = InMemorySessionStore(SessionRecord.from_registration(_GOOD.payload))
    coordinator = _coordinator(broker, store=store)

    await coordinator.disconnect()
    await coordinator.disconnect("dev-explicit")

    assert broker.calls == [
        ("deregister", {"deviceId": "dev-1"}),
        ("deregister", {"deviceId": "dev-explicit"}),
    ]


@pytest.mark.asyncio
async def test_disconnect_without_any_device_id_raises() -> None:
    broker = _FakeBroker()

    with pytest.raises(SessionNotFoundError):
        await _coordinator(broker).disconnect()
    assert broker.calls == []


@pytest.mark.asyncio
async def test_list_connected_runs_once() -> None:
    broker = _FakeBroker()

    outcome = await _coordinator(broker).list_connected()

    assert outcome == RequestOutcome([], True)
    assert broker.count("list_connected") == 1


class _KeylessAdapter(MockDeviceAdapter):
    async def read_public_key(self) -> str:
        raise AdapterExecutionError("cannot read adb public key")


@pytest.mark.asyncio
async def test_unreadable_adb_key_fails_before_first_attempt() -> None:
    broker = _FakeBroker([_GOOD])
    sleeps = _Sleeps()
    coordinator = _coordinator(broker, adapter=_KeylessAdapter(), sleeps=sleeps)

    with pytest.raises(AdapterExecutionError):
        await coordinator.try_register(5)

    assert broker.calls == []
    assert sleeps.delays == []
    assert coordinator.state == RegistrationState.IDLE


@pytest.mark.asyncio
@pytest.mark.parametrize("attempts", [0, -3])
async def test_attempt_count_below_one_still_tries_once(attempts: int) -> None:
    broker = _FakeBroker()
    sleeps = _Sleeps()

    assert await _coordinator(broker, sleeps=sleeps).try_register(attempts) is False
    assert broker.count("register") == 1
    assert sleeps.delays == []
