"""
Request-scoped accessors for the services created at startup.
"""

from fastapi import Request

from ..core.relay import SessionRelay
from ..core.session_events import SessionEvents
from ..storage import SessionStore


def get_relay(request: Request) -> SessionRelay:
    return request.app.state.relay


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_session_events(request: Request) -> SessionEvents:
    return request.app.state.session_events
