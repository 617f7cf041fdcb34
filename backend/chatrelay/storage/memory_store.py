"""
In-memory session store.
"""

import asyncio
import itertools
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models.session import Message, Session
from .interface import SessionNotFoundError, SessionStore

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50


def title_from_message(content: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Derive a session title from the first user message."""
    content = content.strip()
    if len(content) > max_length:
        return content[:max_length] + "..."
    return content


class InMemorySessionStore(SessionStore):
    """
    Keeps sessions and message logs in process memory.

    Every mutation of a session, including the mirror hook it triggers, runs
    under that session's lock; different sessions never wait on each other.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._session_locks: Dict[str, asyncio.Lock] = {}
        self._ids = itertools.count(1)

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = self._session_locks.setdefault(session_id, asyncio.Lock())
        return lock

    async def create_session(self, user_id: str, title: Optional[str] = None) -> Session:
        session = Session(id=str(uuid.uuid4()), user_id=user_id, title=title)
        async with self._lock_for(session.id):
            self._sessions[session.id] = session
            self._messages[session.id] = []

            logger.info(f"Created session {session.id} for user {user_id}")
            await self._on_session_changed(session.id)
            return session.model_copy()

    async def get_session(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return session.model_copy() if session else None

    async def list_user_sessions(self, user_id: str, skip: int = 0, take: int = 20) -> List[Session]:
        sessions = sorted(
            (s for s in self._sessions.values() if s.user_id == user_id),
            key=lambda s: s.last_activity,
            reverse=True,
        )
        return [s.model_copy() for s in sessions[skip:skip + take]]

    async def append_message(
        self,
        session_id: str,
        content: str,
        from_user: bool,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Message:
        async with self._lock_for(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            log = self._messages.setdefault(session_id, [])
            now = datetime.now(timezone.utc)
            if log and log[-1].timestamp > now:
                # Clock stepped backwards; keep the log non-decreasing
                now = log[-1].timestamp

            message = Message(
                id=next(self._ids),
                session_id=session_id,
                content=content,
                from_user=from_user,
                timestamp=now,
                metadata=dict(metadata) if metadata else None,
            )
            log.append(message)

            session.last_activity = now
            if from_user and not session.title:
                session.title = title_from_message(content)

            logger.debug(f"Appended message {message.id} to session {session_id}: {content[:50]}")
            await self._on_session_changed(session_id)
            return message.model_copy()

    async def list_messages(self, session_id: str, skip: int = 0, take: int = 50) -> List[Message]:
        log = list(self._messages.get(session_id, ()))
        return [m.model_copy() for m in log[skip:skip + take]]

    async def recent_messages(self, session_id: str, limit: int) -> List[Message]:
        if limit <= 0:
            return []
        log = list(self._messages.get(session_id, ()))
        return [m.model_copy() for m in log[-limit:]]

    async def count_messages(self, session_id: str) -> int:
        return len(self._messages.get(session_id, ()))

    async def update_title(self, session_id: str, title: str) -> Optional[Session]:
        async with self._lock_for(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.title = title
            session.last_activity = datetime.now(timezone.utc)
            logger.info(f"Updated session {session_id} title to: {title}")
            await self._on_session_changed(session_id)
            return session.model_copy()

    async def deactivate_session(self, session_id: str) -> Optional[Session]:
        async with self._lock_for(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.is_active = False
            logger.info(f"Deactivated session {session_id}")
            await self._on_session_changed(session_id)
            return session.model_copy()

    async def delete_session(self, session_id: str) -> bool:
        async with self._lock_for(session_id):
            removed = self._sessions.pop(session_id, None) is not None
            self._messages.pop(session_id, None)
            if removed:
                logger.info(f"Deleted session {session_id}")
                await self._on_session_deleted(session_id)
        self._session_locks.pop(session_id, None)
        return removed

    async def _on_session_changed(self, session_id: str) -> None:
        """Hook for subclasses that mirror state elsewhere. Called with the session lock held."""

    async def _on_session_deleted(self, session_id: str) -> None:
        """Hook for subclasses that mirror state elsewhere. Called with the session lock held."""
