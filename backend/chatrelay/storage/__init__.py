"""Storage module - session store interface and implementations."""

from .interface import SessionNotFoundError, SessionStore
from .memory_store import InMemorySessionStore, title_from_message
from .local_storage import LocalSessionStore


def create_session_store(storage_type: str = "memory", local_storage_path: str = "./data") -> SessionStore:
    """Build the configured session store."""
    if storage_type == "memory":
        return InMemorySessionStore()
    if storage_type == "local":
        return LocalSessionStore(local_storage_path)
    raise ValueError(f"Unsupported storage type: {storage_type}")


__all__ = [
    'SessionNotFoundError', 'SessionStore', 'InMemorySessionStore', 'LocalSessionStore',
    'create_session_store', 'title_from_message',
]
