"""Core module - connection registry, session relay and reply post-processing."""

from .registry import ClientConnection, ConnectionRegistry
from .session_events import SessionEvents
from .relay import RetryPolicy, SessionRelay

__all__ = ['ClientConnection', 'ConnectionRegistry', 'SessionEvents', 'RetryPolicy', 'SessionRelay']
