"""
Session Store Interface - Abstract contract for session and message persistence.
The relay only depends on this interface, so an in-memory store, the local
JSON mirror or an external database can be swapped at startup.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models.session import Message, Session


class SessionNotFoundError(LookupError):
    """Raised when an operation targets a session the store does not know."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionStore(ABC):
    """
    Owns session records and the append-only message log of each session.
    Implementations must serialise concurrent appends to one session.
    """

    @abstractmethod
    async def create_session(self, user_id: str, title: Optional[str] = None) -> Session:
        """
        Create a new active session.

        Args:
            user_id: Owning user identity
            title: Optional display title; when omitted the first user
                message provides one

        Returns:
            Session: The created session
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Session]:
        """Return the session, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_user_sessions(self, user_id: str, skip: int = 0, take: int = 20) -> List[Session]:
        """
        List a user's sessions, most recently active first.

        Args:
            user_id: Owning user identity
            skip: Number of sessions to skip
            take: Maximum number of sessions to return

        Returns:
            List[Session]: Sessions ordered by descending last activity
        """
        pass

    @abstractmethod
    async def append_message(
        self,
        session_id: str,
        content: str,
        from_user: bool,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Message:
        """
        Append a message to a session's log.

        The store assigns the identifier and timestamp at append time, so they
        reflect arrival order at the store.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        pass

    @abstractmethod
    async def list_messages(self, session_id: str, skip: int = 0, take: int = 50) -> List[Message]:
        """
        List messages of a session in ascending timestamp order.

        Returns an empty list for unknown sessions.
        """
        pass

    @abstractmethod
    async def recent_messages(self, session_id: str, limit: int) -> List[Message]:
        """Return the last ``limit`` messages of a session, oldest first."""
        pass

    @abstractmethod
    async def count_messages(self, session_id: str) -> int:
        """Return the number of messages in a session."""
        pass

    @abstractmethod
    async def update_title(self, session_id: str, title: str) -> Optional[Session]:
        """Rename a session. Returns None if it does not exist."""
        pass

    @abstractmethod
    async def deactivate_session(self, session_id: str) -> Optional[Session]:
        """Mark a session inactive. Returns None if it does not exist."""
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its messages. Returns True if it existed."""
        pass
