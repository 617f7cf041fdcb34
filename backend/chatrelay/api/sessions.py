"""
Session API endpoints - Session listing, message history and session management.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from typing import Optional

from ..config import settings
from ..core.session_events import SessionEvents
from ..models import DEFAULT_SESSION_TITLE, MessageList, MessageOut, Session, SessionList, SessionSummary
from ..storage import SessionStore
from .dependencies import get_session_events, get_session_store

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class CreateSessionRequest(BaseModel):
    """Explicit "new chat" request."""
    user_id: str = Field(min_length=1)
    title: Optional[str] = Field(default=None, max_length=200)


class RenameSessionRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)


async def _summarize(store: SessionStore, session: Session) -> SessionSummary:
    last = await store.recent_messages(session.id, 1)
    return SessionSummary(
        id=session.id,
        title=session.title or DEFAULT_SESSION_TITLE,
        created_at=session.created_at,
        last_activity=session.last_activity,
        is_active=session.is_active,
        message_count=await store.count_messages(session.id),
        last_message=last[0].content[:100] if last else None,
    )


async def _require_session(store: SessionStore, session_id: str) -> Session:
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")
    return session


@router.post("", response_model=SessionSummary, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: CreateSessionRequest,
    store: SessionStore = Depends(get_session_store),
    events: SessionEvents = Depends(get_session_events),
):
    """Create a new chat session for a user."""
    session = await store.create_session(body.user_id, title=body.title)
    await events.notify_created(session.id)
    return await _summarize(store, session)


@router.get("", response_model=SessionList)
async def list_sessions(
    user_id: str = Query(..., min_length=1),
    skip: int = Query(0, ge=0),
    take: Optional[int] = Query(None, ge=1, le=200),
    store: SessionStore = Depends(get_session_store),
):
    """
    List a user's sessions, most recently active first.

    Args:
        user_id: Owning user
        skip: Number of sessions to skip
        take: Page size (defaults to the configured session page size)
    """
    take = take or settings.default_session_page_size
    sessions = await store.list_user_sessions(user_id, skip=skip, take=take)
    return SessionList(
        sessions=[await _summarize(store, s) for s in sessions],
        skip=skip,
        take=take,
    )


@router.get("/{session_id}", response_model=SessionSummary)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Get one session."""
    return await _summarize(store, await _require_session(store, session_id))


@router.get("/{session_id}/messages", response_model=MessageList)
async def list_messages(
    session_id: str,
    skip: int = Query(0, ge=0),
    take: Optional[int] = Query(None, ge=1, le=500),
    store: SessionStore = Depends(get_session_store),
):
    """
    List the messages of a session in chronological order.

    Args:
        session_id: Session to read
        skip: Number of messages to skip
        take: Page size (defaults to the configured message page size)
    """
    await _require_session(store, session_id)
    take = take or settings.default_message_page_size
    messages = await store.list_messages(session_id, skip=skip, take=take)
    return MessageList(
        session_id=session_id,
        messages=[MessageOut.from_message(m) for m in messages],
        skip=skip,
        take=take,
    )


@router.patch("/{session_id}", response_model=SessionSummary)
async def rename_session(
    session_id: str,
    body: RenameSessionRequest,
    store: SessionStore = Depends(get_session_store),
    events: SessionEvents = Depends(get_session_events),
):
    """Change a session's display title."""
    session = await store.update_title(session_id, body.title.strip())
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")
    await events.notify_updated(session_id)
    return await _summarize(store, session)


@router.post("/{session_id}/deactivate", response_model=SessionSummary)
async def deactivate_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    events: SessionEvents = Depends(get_session_events),
):
    """Mark a session inactive; it stays readable."""
    session = await store.deactivate_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")
    await events.notify_updated(session_id)
    return await _summarize(store, session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    events: SessionEvents = Depends(get_session_events),
):
    """Delete a session and its messages."""
    if not await store.delete_session(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")
    await events.notify_deleted(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
