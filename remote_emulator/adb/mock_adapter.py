"""In-memory adapter used for local simulation and tests."""

from __future__ import annotations

from remote_emulator.adb.base import DeviceCommandAdapter
from remote_emulator.errors import AdapterExecutionError


class MockDeviceAdapter(DeviceCommandAdapter):
    """Records every command and answers from in-memory state."""

    name = "mock"

    def __init__(
        self,
        *,
        states: dict[str, str] | None = None,
        public_key: str = "mock-adb-key",
        fail_connect: bool = False,
    ) -> None:
        self.states = dict(states or {})
        self.public_key = public_key
        self.fail_connect = fail_connect
        self.calls: list[tuple[str, ...]] = []

    async def establish_tunnel(self, remote_address: str) -> None:
        self.calls.append(("connect", remote_address))
        if self.fail_connect:
            raise AdapterExecutionError(f"failed to connect to {remote_address}", returncode=1)
        self.states[remote_address] = "device"

    async def clear_port_forwards(self) -> None:
        self.calls.append(("reverse", "--remove-all"))

    async def list_device_states(self) -> dict[str, str]:
        self.calls.append(("devices",))
        return dict(self.states)

    async def read_public_key(self) -> str:
        return self.public_key
