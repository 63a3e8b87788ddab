"""Local persistence of the active remote device session."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from remote_emulator.errors import PersistenceError, SessionNotFoundError
from remote_emulator.utils.helpers import ensure_dir

DEFAULT_SESSION_DIR = "/tmp/remote-emulator"
DEVICE_ID_FILE = "deviceId.txt"
REGISTRATION_FILE = "data.json"


@dataclass(slots=True)
class SessionRecord:
    """Device identity and connect address returned by the last registration."""

    device_id: str = ""
    remote_connect_address: str = ""
    registration_payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_registration(cls, payload: dict[str, Any]) -> "SessionRecord":
        data = payload if isinstance(payload, dict) else {}
        return cls(
            device_id=str(data.get("deviceId") or "").strip(),
            remote_connect_address=str(data.get("remoteConnectUrl") or "").strip(),
            registration_payload=dict(data),
        )


class SessionStore(ABC):
    """Storage contract for the session record.

    Callers must be the only writer: concurrent processes are not
    coordinated and the last write wins.
    """

    @abstractmethod
    async def save(self, record: SessionRecord) -> None:
        """Persist the record, replacing any previous one."""

    @abstractmethod
    async def load_device_identifier(self) -> str:
        """Return the stored device id or raise SessionNotFoundError."""

    @abstractmethod
    async def load_full_record(self) -> SessionRecord:
        """Return the stored record or raise SessionNotFoundError."""


class InMemorySessionStore(SessionStore):
    def __init__(self, record: SessionRecord | None = None) -> None:
        self.record = record
        self.saves = 0

    async def save(self, record: SessionRecord) -> None:
        self.record = record
        self.saves += 1

    async def load_device_identifier(self) -> str:
        if self.record is None or not self.record.device_id:
            raise SessionNotFoundError("no stored device id")
        return self.record.device_id

    async def load_full_record(self) -> SessionRecord:
        if self.record is None:
            raise SessionNotFoundError("no stored session")
        return self.record


class FileSessionStore(SessionStore):
    """Keeps `deviceId.txt` and `data.json` in a scratch directory."""

    def __init__(self, directory: str | Path = DEFAULT_SESSION_DIR) -> None:
        self.directory = Path(directory).expanduser()

    @property
    def device_id_path(self) -> Path:
        return self.directory / DEVICE_ID_FILE

    @property
    def registration_path(self) -> Path:
        return self.directory / REGISTRATION_FILE

    async def save(self, record: SessionRecord) -> None:
        await asyncio.to_thread(self._write, record)

    async def load_device_identifier(self) -> str:
        text = await asyncio.to_thread(self._read, self.device_id_path)
        device_id = text.strip()
        if not device_id:
            raise SessionNotFoundError(f"{self.device_id_path} is empty")
        return device_id

    async def load_full_record(self) -> SessionRecord:
        text = await asyncio.to_thread(self._read, self.registration_path)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"corrupt session file {self.registration_path}: {e}") from e
        if not isinstance(payload, dict):
            raise PersistenceError(f"corrupt session file {self.registration_path}: not an object")
        return SessionRecord.from_registration(payload)

    def _write(self, record: SessionRecord) -> None:
        # Each file is written independently; a crash between them leaves a mixed pair.
        try:
            ensure_dir(self.directory)
            self.device_id_path.write_text(record.device_id, encoding="utf-8")
            payload = {
                **record.registration_payload,
                "deviceId": record.device_id,
                "remoteConnectUrl": record.remote_connect_address,
            }
            self.registration_path.write_text(
                json.dumps(payload, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as e:
            raise PersistenceError(f"cannot write session to {self.directory}: {e}") from e

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise SessionNotFoundError(f"{path} does not exist") from e
        except OSError as e:
            raise PersistenceError(f"cannot read {path}: {e}") from e
