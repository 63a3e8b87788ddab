"""Session lifecycle orchestration."""

from remote_emulator.session.coordinator import RegistrationState, SessionCoordinator

__all__ = ["RegistrationState", "SessionCoordinator"]
