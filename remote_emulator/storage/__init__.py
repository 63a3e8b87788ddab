"""Session storage backends."""

from remote_emulator.storage.session_store import (
    FileSessionStore,
    InMemorySessionStore,
    SessionRecord,
    SessionStore,
)

__all__ = [
    "FileSessionStore",
    "InMemorySessionStore",
    "SessionRecord",
    "SessionStore",
]
