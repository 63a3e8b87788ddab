"""Adapter that drives the adb command-line tool."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable

from loguru import logger

from remote_emulator.adb.base import DeviceCommandAdapter, parse_device_states
from remote_emulator.errors import AdapterExecutionError
from remote_emulator.utils.helpers import truncate_string

CommandRunner = Callable[[list[str]], Awaitable[tuple[int, str, str]]]


async def run_command(argv: list[str]) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr)."""
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    return (
        int(proc.returncode or 0),
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )


class AdbCommandAdapter(DeviceCommandAdapter):
    """Runs `adb connect`, `adb devices` and `adb reverse` as subprocesses."""

    name = "adb"

    def __init__(
        self,
        *,
        adb_path: str = "adb",
        public_key_path: str = "~/.android/adbkey.pub",
        runner: CommandRunner | None = None,
    ) -> None:
        self.adb_path = str(adb_path or "adb").strip() or "adb"
        self.public_key_path = Path(str(public_key_path or "~/.android/adbkey.pub")).expanduser()
        self._runner = runner or run_command

    async def establish_tunnel(self, remote_address: str) -> None:
        address = str(remote_address or "").strip()
        if not address:
            raise AdapterExecutionError("remote address is required")
        await self.execute("connect", address)

    async def clear_port_forwards(self) -> None:
        await self.execute("reverse", "--remove-all")

    async def list_device_states(self) -> dict[str, str]:
        return parse_device_states(await self.execute("devices"))

    async def read_public_key(self) -> str:
        try:
            return await asyncio.to_thread(self.public_key_path.read_text, encoding="utf-8")
        except OSError as e:
            raise AdapterExecutionError(f"cannot read adb public key {self.public_key_path}: {e}") from e

    async def execute(self, *args: str) -> str:
        """Run one adb sub-command and return its stdout."""
        argv = [self.adb_path, *args]
        command = " ".join(args)
        try:
            code, stdout, stderr = await self._runner(argv)
        except OSError as e:
            logger.error(f"Error executing command: {command}: {e}")
            raise AdapterExecutionError(f"cannot execute {argv[0]}: {e}", command=argv) from e
        if code != 0:
            logger.error(f"Error executing command: {command}\n{stderr}")
            raise AdapterExecutionError(
                f"adb {command} exited with status {code}",
                command=argv,
                returncode=code,
                stderr=stderr,
            )
        logger.debug(f"Executed: {command}\n{truncate_string(stdout, 2000)}")
        return stdout
