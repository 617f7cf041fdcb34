"""
Session change notifications (created / updated / deleted) for in-process listeners.
"""

import logging
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)

SessionListener = Callable[[str, str], Awaitable[None]]

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"


class SessionEvents:
    """Fans session change notifications out to registered async listeners."""

    def __init__(self):
        self._listeners: List[SessionListener] = []

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def notify(self, session_id: str, change: str) -> None:
        for listener in list(self._listeners):
            try:
                await listener(session_id, change)
            except Exception as e:
                logger.error(f"Session listener failed for {session_id} ({change}): {e}", exc_info=True)

    async def notify_created(self, session_id: str) -> None:
        await self.notify(session_id, CREATED)

    async def notify_updated(self, session_id: str) -> None:
        await self.notify(session_id, UPDATED)

    async def notify_deleted(self, session_id: str) -> None:
        await self.notify(session_id, DELETED)
