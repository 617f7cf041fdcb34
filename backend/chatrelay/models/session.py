"""
Session Models - Conversation sessions and the messages appended to them.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_SESSION_TITLE = "New Chat"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A single chat message. Never modified once appended."""
    id: int
    session_id: str
    content: str
    from_user: bool
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Optional[Dict[str, Any]] = None  # passed through untouched


class Session(BaseModel):
    """Chat session record owned by the session store."""
    id: str
    user_id: str
    title: Optional[str] = None  # set from the first user message when missing
    created_at: datetime = Field(default_factory=utc_now)
    last_activity: datetime = Field(default_factory=utc_now)
    is_active: bool = True


class SessionSummary(BaseModel):
    """Session listing entry, as returned by the REST surface."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    created_at: datetime
    last_activity: datetime
    is_active: bool
    message_count: int = 0
    last_message: Optional[str] = None


class MessageOut(BaseModel):
    """Message as exposed to clients."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    content: str
    is_from_user: bool
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            content=message.content,
            is_from_user=message.from_user,
            timestamp=message.timestamp,
            metadata=message.metadata,
        )


class SessionList(BaseModel):
    """Page of session summaries."""
    sessions: List[SessionSummary]
    skip: int
    take: int


class MessageList(BaseModel):
    """Page of messages in ascending timestamp order."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    messages: List[MessageOut]
    skip: int
    take: int
