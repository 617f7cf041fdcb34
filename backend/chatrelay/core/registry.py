"""
Connection Registry - Tracks live connections and their session memberships,
and fans events out to a session's members.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, List, Optional, Set

from ..models.events import ServerEvent

logger = logging.getLogger(__name__)


class ClientConnection(ABC):
    """One live client transport link."""

    connection_id: str

    @abstractmethod
    async def send(self, event: ServerEvent) -> None:
        """
        Deliver one event to the client.

        Raises whatever the transport raises when the link is gone; the
        registry treats that as a no-op delivery.
        """
        pass


class ConnectionRegistry:
    """
    Many-to-many relation between live connections and sessions.

    All maps are guarded by a single lock so that join/leave/connect/disconnect
    are atomic with respect to ``members_of`` snapshots. Joining a second
    session does not leave the first one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: Dict[str, ClientConnection] = {}
        self._sessions_by_connection: Dict[str, Set[str]] = {}
        self._members_by_session: Dict[str, Set[str]] = {}

    def on_connect(self, connection: ClientConnection) -> None:
        """Register a connection with no memberships."""
        with self._lock:
            self._connections[connection.connection_id] = connection
            self._sessions_by_connection.setdefault(connection.connection_id, set())
        logger.info(f"Client connected: {connection.connection_id}")

    def on_disconnect(self, connection_id: str) -> FrozenSet[str]:
        """
        Remove a connection and every membership it holds.

        Returns:
            The sessions the connection was a member of
        """
        with self._lock:
            self._connections.pop(connection_id, None)
            sessions = self._sessions_by_connection.pop(connection_id, set())
            for session_id in sessions:
                members = self._members_by_session.get(session_id)
                if members is not None:
                    members.discard(connection_id)
                    if not members:
                        del self._members_by_session[session_id]
        logger.info(f"Client disconnected: {connection_id}")
        return frozenset(sessions)

    def join(self, connection_id: str, session_id: str) -> bool:
        """
        Add a membership. Idempotent.

        Returns False (and logs) when the connection is already gone, which is
        a benign race with disconnect rather than an error.
        """
        with self._lock:
            sessions = self._sessions_by_connection.get(connection_id)
            if sessions is None:
                joined = False
            else:
                sessions.add(session_id)
                self._members_by_session.setdefault(session_id, set()).add(connection_id)
                joined = True

        if joined:
            logger.info(f"Connection {connection_id} joined session {session_id}")
        else:
            logger.warning(f"Ignoring join of unknown connection {connection_id} to session {session_id}")
        return joined

    def leave(self, connection_id: str, session_id: str) -> None:
        """Remove a membership. Idempotent."""
        with self._lock:
            sessions = self._sessions_by_connection.get(connection_id)
            if sessions is not None:
                sessions.discard(session_id)
            members = self._members_by_session.get(session_id)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._members_by_session[session_id]
        logger.info(f"Connection {connection_id} left session {session_id}")

    def members_of(self, session_id: str) -> FrozenSet[str]:
        """Snapshot of the connection ids subscribed to a session."""
        with self._lock:
            return frozenset(self._members_by_session.get(session_id, ()))

    def sessions_of(self, connection_id: str) -> FrozenSet[str]:
        """Snapshot of the sessions a connection belongs to."""
        with self._lock:
            return frozenset(self._sessions_by_connection.get(connection_id, ()))

    def get(self, connection_id: str) -> Optional[ClientConnection]:
        with self._lock:
            return self._connections.get(connection_id)

    def is_connected(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._connections

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def _resolve_members(self, session_id: str) -> List[ClientConnection]:
        with self._lock:
            return [
                self._connections[cid]
                for cid in self._members_by_session.get(session_id, ())
                if cid in self._connections
            ]

    async def broadcast(self, session_id: str, event: ServerEvent) -> int:
        """
        Deliver an event to every current member of a session.

        Members are snapshotted when the call starts; deliveries run
        concurrently and a failed delivery never affects the others.

        Returns:
            int: Number of successful deliveries
        """
        members = self._resolve_members(session_id)
        if not members:
            logger.debug(f"No members to receive {event.name} in session {session_id}")
            return 0

        results = await asyncio.gather(*(self._deliver(c, event) for c in members))
        return sum(results)

    async def send_to(self, connection_id: str, event: ServerEvent) -> bool:
        """Deliver an event to one connection. Unknown connections are a no-op."""
        connection = self.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping {event.name} for departed connection {connection_id}")
            return False
        return await self._deliver(connection, event)

    async def _deliver(self, connection: ClientConnection, event: ServerEvent) -> bool:
        try:
            await connection.send(event)
            return True
        except Exception as e:
            logger.debug(f"Delivery of {event.name} to {connection.connection_id} failed: {e}")
            return False
