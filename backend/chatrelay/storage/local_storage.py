"""
Local Filesystem Session Store.
Mirrors every session (record + message log) to a JSON file on the server's
local filesystem and reloads them at startup.
"""

import itertools
import json
import logging
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

from ..models.session import Message, Session
from .memory_store import InMemorySessionStore

logger = logging.getLogger(__name__)


class LocalSessionStore(InMemorySessionStore):
    """
    In-memory store with a best-effort JSON mirror under ``base_dir/sessions``.
    Reads are always served from memory.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored files
        """
        super().__init__()
        self.base_dir = Path(base_dir).resolve()
        self.sessions_dir = self.base_dir / "sessions"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

    def _get_session_path(self, session_id: str) -> Path:
        """Resolve the mirror file of a session inside the sessions directory."""
        full_path = (self.sessions_dir / f"{session_id}.json").resolve()
        if full_path.parent != self.sessions_dir:
            raise ValueError(f"Invalid session id: {session_id} - path traversal detected")
        return full_path

    async def load(self) -> int:
        """
        Load every mirrored session into memory.

        Returns:
            int: Number of sessions loaded
        """
        loaded = 0
        max_id = 0
        for path in sorted(self.sessions_dir.glob("*.json")):
            try:
                async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                    payload = json.loads(await f.read())
                session = Session.model_validate(payload["session"])
                messages = [Message.model_validate(m) for m in payload.get("messages", [])]
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable session file {path.name}: {e}")
                continue

            self._sessions[session.id] = session
            self._messages[session.id] = messages
            if messages:
                max_id = max(max_id, max(m.id for m in messages))
            loaded += 1

        self._ids = itertools.count(max_id + 1)
        logger.info(f"Loaded {loaded} sessions from {self.sessions_dir}")
        return loaded

    async def _on_session_changed(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        payload = {
            "session": session.model_dump(mode="json"),
            "messages": [m.model_dump(mode="json") for m in self._messages.get(session_id, [])],
        }
        path = self._get_session_path(session_id)
        tmp_path = path.with_name(f"{path.stem}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(payload, ensure_ascii=False, indent=2))
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Error mirroring session {session_id}: {e}", exc_info=True)
            tmp_path.unlink(missing_ok=True)

    async def _on_session_deleted(self, session_id: str) -> None:
        path = self._get_session_path(session_id)
        try:
            if path.exists():
                await aiofiles.os.remove(path)
        except OSError as e:
            logger.error(f"Error deleting session file {path.name}: {e}", exc_info=True)
