"""Exception hierarchy shared by the session components."""

from __future__ import annotations


class RemoteEmulatorError(Exception):
    """Base class for every error raised by remote_emulator."""


class MissingCredentialError(RemoteEmulatorError):
    """Broker token is absent or blank."""


class AdapterExecutionError(RemoteEmulatorError):
    """A local device-control command could not be run or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command or [])
        self.returncode = returncode
        self.stderr = stderr


class PersistenceError(RemoteEmulatorError):
    """Local session storage could not be read or written."""


class SessionNotFoundError(RemoteEmulatorError):
    """No session has been stored locally yet."""
