"""
Relay Events - Frames exchanged with clients over the duplex channel.

Inbound frames are JSON objects discriminated by ``type``. Outbound frames are
``{"type": <event name>, "data": <payload>}``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from .session import Message

MessageStatus = Literal["sent", "error"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Client -> server

class JoinSession(_CamelModel):
    type: Literal["JoinSession"]
    session_id: str = Field(min_length=1)


class LeaveSession(_CamelModel):
    type: Literal["LeaveSession"]
    session_id: str = Field(min_length=1)


class SendMessage(_CamelModel):
    type: Literal["SendMessage"]
    session_id: str = Field(min_length=1)
    message: str = ""  # emptiness is rejected by the relay, not here


class GetModelStatus(_CamelModel):
    type: Literal["GetModelStatus"]


class NewChat(_CamelModel):
    type: Literal["NewChat"]
    title: Optional[str] = None


ClientEvent = Annotated[
    Union[JoinSession, LeaveSession, SendMessage, GetModelStatus, NewChat],
    Field(discriminator="type"),
]

_client_event_adapter: TypeAdapter = TypeAdapter(ClientEvent)


def parse_client_event(payload: Any) -> ClientEvent:
    """Validate an inbound frame. Raises pydantic.ValidationError."""
    return _client_event_adapter.validate_python(payload)


# Server -> client payloads

class ReceiveMessagePayload(_CamelModel):
    id: int
    content: str
    is_from_user: bool
    timestamp: datetime
    status: MessageStatus = "sent"

    @classmethod
    def from_message(cls, message: Message, status: MessageStatus = "sent") -> "ReceiveMessagePayload":
        return cls(
            id=message.id,
            content=message.content,
            is_from_user=message.from_user,
            timestamp=message.timestamp,
            status=status,
        )


class ModelStatusPayload(_CamelModel):
    is_loaded: bool
    status: str


class ConnectedPayload(_CamelModel):
    connection_id: str
    session_id: Optional[str] = None


class SessionCreatedPayload(_CamelModel):
    session_id: str
    title: str


class SessionUpdatedPayload(_CamelModel):
    session_id: str
    change: str


@dataclass(frozen=True)
class ServerEvent:
    """An outbound event; ``data`` is a payload model or a JSON primitive."""
    name: str
    data: Any = None

    def to_wire(self) -> Dict[str, Any]:
        data = self.data
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json", by_alias=True)
        return {"type": self.name, "data": data}

    @classmethod
    def receive_message(cls, message: Message, status: MessageStatus = "sent") -> "ServerEvent":
        return cls("ReceiveMessage", ReceiveMessagePayload.from_message(message, status))

    @classmethod
    def typing(cls, is_typing: bool) -> "ServerEvent":
        return cls("TypingIndicator", is_typing)

    @classmethod
    def model_status(cls, is_loaded: bool, status: str) -> "ServerEvent":
        return cls("ModelStatus", ModelStatusPayload(is_loaded=is_loaded, status=status))

    @classmethod
    def error(cls, message: str) -> "ServerEvent":
        return cls("Error", message)

    @classmethod
    def connected(cls, connection_id: str, session_id: Optional[str]) -> "ServerEvent":
        return cls("Connected", ConnectedPayload(connection_id=connection_id, session_id=session_id))

    @classmethod
    def session_created(cls, session_id: str, title: str) -> "ServerEvent":
        return cls("SessionCreated", SessionCreatedPayload(session_id=session_id, title=title))

    @classmethod
    def session_updated(cls, session_id: str, change: str) -> "ServerEvent":
        return cls("SessionUpdated", SessionUpdatedPayload(session_id=session_id, change=change))
