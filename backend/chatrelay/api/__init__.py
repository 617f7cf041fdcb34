"""API module."""

from .chat_ws import router as chat_router
from .sessions import router as sessions_router
from .diagnostics import router as diagnostics_router

__all__ = ['chat_router', 'sessions_router', 'diagnostics_router']
