"""Models module."""

from .session import (
    DEFAULT_SESSION_TITLE, Message, MessageList, MessageOut, Session, SessionList, SessionSummary,
)
from .events import (
    ClientEvent, GetModelStatus, JoinSession, LeaveSession, NewChat, SendMessage,
    ServerEvent, parse_client_event,
)

__all__ = [
    'DEFAULT_SESSION_TITLE', 'Message', 'MessageList', 'MessageOut', 'Session', 'SessionList',
    'SessionSummary',
    'ClientEvent', 'GetModelStatus', 'JoinSession', 'LeaveSession', 'NewChat', 'SendMessage',
    'ServerEvent', 'parse_client_event',
]
