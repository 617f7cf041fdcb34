"""
Session Relay - Message pipeline between connections, the session store and
the response generator.

Each inbound user message runs one pipeline:

    validate -> persist + broadcast user message -> typing on
    -> generate (retry loop) -> clean -> persist + broadcast reply -> typing off

Pipelines for different sessions never wait on each other. Two pipelines in
the same session may interleave; replies are appended in completion order.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..generation.base import (
    GenerationParameters, GenerationRequest, GenerationResponse, GenerationStatus,
    ResponseGenerator,
)
from ..models.events import ServerEvent
from ..models.session import DEFAULT_SESSION_TITLE, Session
from ..storage.interface import SessionStore
from .postprocess import clean_response
from .registry import ClientConnection, ConnectionRegistry
from .session_events import SessionEvents

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_ERROR = "Message cannot be empty"
SESSION_NOT_FOUND_ERROR = "Session not found"
PROCESSING_FAILED_ERROR = "Failed to process message. Please try again."
APOLOGY_MESSAGE = "I apologize, but I'm experiencing technical difficulties. Please try again."
TEST_SESSION_ID = "test-session"

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class RetryPolicy:
    """
    Bounded retry schedule for generation attempts.

    ``max_retries`` is the total number of attempts. Transient failures wait
    ``backoff_seconds * 2**attempt``, faults wait ``backoff_seconds * attempt``.
    """
    max_retries: int = 3
    backoff_seconds: float = 1.0
    jitter_seconds: float = 0.0

    def delay_for(self, status: GenerationStatus, attempt: int) -> float:
        if status is GenerationStatus.TRANSIENT:
            delay = self.backoff_seconds * (2 ** attempt)
        else:
            delay = self.backoff_seconds * attempt
        if self.jitter_seconds:
            delay += random.uniform(0, self.jitter_seconds)
        return delay


def format_history(messages) -> str:
    """Render recent messages as plain dialogue for the generator context."""
    return "\n".join(
        f"{'User' if m.from_user else 'Assistant'}: {m.content}" for m in messages
    )


class SessionRelay:
    """
    Coordinates the chat pipeline for every connected client.

    The relay owns no per-session state; sessions and messages live in the
    store, memberships in the registry.
    """

    def __init__(
        self,
        store: SessionStore,
        registry: ConnectionRegistry,
        generator: ResponseGenerator,
        retry_policy: Optional[RetryPolicy] = None,
        parameters: Optional[GenerationParameters] = None,
        max_response_length: int = 800,
        truncation_window: int = 200,
        context_history_messages: int = 6,
        attempt_timeout: Optional[float] = None,
        events: Optional[SessionEvents] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.registry = registry
        self.generator = generator
        self.retry_policy = retry_policy or RetryPolicy()
        self.parameters = parameters or GenerationParameters()
        self.max_response_length = max_response_length
        self.truncation_window = truncation_window
        self.context_history_messages = context_history_messages
        self.attempt_timeout = attempt_timeout
        self.events = events or SessionEvents()
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()

    # Connection lifecycle

    async def open_connection(self, connection: ClientConnection, user_id: str) -> Optional[Session]:
        """
        Register a connection and attach it to the user's current session.

        The most recently active session of the user is reused; a user without
        an active session gets a new one.
        """
        self.registry.on_connect(connection)

        session = None
        for candidate in await self.store.list_user_sessions(user_id, skip=0, take=20):
            if candidate.is_active:
                session = candidate
                break
        if session is None:
            session = await self.store.create_session(user_id)
            await self.events.notify_created(session.id)

        self.registry.join(connection.connection_id, session.id)
        await self.registry.send_to(
            connection.connection_id, ServerEvent.connected(connection.connection_id, session.id)
        )
        return session

    def close_connection(self, connection_id: str) -> None:
        """Drop a connection. Pipelines it started keep running."""
        self.registry.on_disconnect(connection_id)

    async def join_session(self, connection_id: str, session_id: str) -> bool:
        return self.registry.join(connection_id, session_id)

    async def leave_session(self, connection_id: str, session_id: str) -> None:
        self.registry.leave(connection_id, session_id)

    async def new_chat(self, connection_id: str, user_id: str, title: Optional[str] = None) -> Session:
        """Create a session for the user and subscribe the calling connection to it."""
        session = await self.store.create_session(user_id, title=title)
        self.registry.join(connection_id, session.id)
        await self.events.notify_created(session.id)
        await self.registry.send_to(
            connection_id, ServerEvent.session_created(session.id, session.title or DEFAULT_SESSION_TITLE)
        )
        return session

    async def send_model_status(self, connection_id: str) -> None:
        """Reply to the caller with the generator's readiness."""
        try:
            event = ServerEvent.model_status(self.generator.is_ready(), self.generator.status())
        except Exception as e:
            logger.error(f"Error getting model status: {e}", exc_info=True)
            event = ServerEvent.error("Failed to get model status")
        await self.registry.send_to(connection_id, event)

    # Message pipeline

    def submit_message(self, connection_id: str, session_id: str, text: str) -> asyncio.Task:
        """Run the message pipeline as its own task so the caller's read loop stays free."""
        task = asyncio.create_task(
            self.handle_send_message(connection_id, session_id, text),
            name=f"relay:{session_id}:{connection_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Give in-flight pipelines a chance to finish, then cancel the rest."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"Relay shutdown: {len(done)} pipelines finished, {len(pending)} cancelled")

    async def handle_send_message(self, connection_id: str, session_id: str, text: str) -> None:
        """
        Run one pipeline for an inbound user message.

        Only validation failures and unexpected faults reach the caller as
        ``Error`` events. Generation failures become an assistant message with
        status "error". Once typing-on was broadcast, typing-off is broadcast
        exactly once, before any error notice.
        """
        if not text or not text.strip():
            await self.registry.send_to(connection_id, ServerEvent.error(EMPTY_MESSAGE_ERROR))
            return

        typing_started = False
        failed = False
        try:
            session = await self.store.get_session(session_id)
            if session is None:
                await self.registry.send_to(connection_id, ServerEvent.error(SESSION_NOT_FOUND_ERROR))
                return

            user_message = await self.store.append_message(session_id, text, from_user=True)
            await self.registry.broadcast(session_id, ServerEvent.receive_message(user_message))
            if not session.title:
                await self.events.notify_updated(session_id)

            await self.registry.broadcast(session_id, ServerEvent.typing(True))
            typing_started = True

            request = await self.build_request(session_id, text, exclude_message_id=user_message.id)
            result = await self.generate_with_retries(request)

            if result.success:
                content = clean_response(result.content, self.max_response_length, self.truncation_window)
                reply = await self.store.append_message(
                    session_id, content, from_user=False, metadata=result.metadata or None
                )
                await self.registry.broadcast(session_id, ServerEvent.receive_message(reply, "sent"))
            else:
                logger.error(
                    f"Generation failed for session {session_id}: {result.error}",
                    extra={"extra_fields": {
                        "session_id": session_id,
                        "status": result.status.value,
                        "attempts": result.metadata.get("attempts"),
                    }}
                )
                reply = await self.store.append_message(
                    session_id, APOLOGY_MESSAGE, from_user=False, metadata={"error": result.error}
                )
                await self.registry.broadcast(session_id, ServerEvent.receive_message(reply, "error"))

            logger.info(f"Processed message for session {session_id}")
        except Exception as e:
            failed = True
            logger.error(f"Error processing message for session {session_id}: {e}", exc_info=True)
        finally:
            if typing_started or failed:
                await self.registry.broadcast(session_id, ServerEvent.typing(False))

        if failed:
            await self.registry.send_to(connection_id, ServerEvent.error(PROCESSING_FAILED_ERROR))

    async def build_request(
        self,
        session_id: str,
        text: str,
        exclude_message_id: Optional[int] = None,
        parameters: Optional[GenerationParameters] = None,
    ) -> GenerationRequest:
        """Assemble a generation request with recent session history as context."""
        context = None
        if self.context_history_messages > 0:
            history = await self.store.recent_messages(session_id, self.context_history_messages + 1)
            history = [m for m in history if m.id != exclude_message_id][-self.context_history_messages:]
            context = format_history(history) or None

        return GenerationRequest(
            prompt=text,
            session_id=session_id,
            context=context,
            parameters=parameters or self.parameters,
        )

    async def generate_with_retries(self, request: GenerationRequest) -> GenerationResponse:
        """
        Call the generator until it succeeds, fails terminally or the attempt
        budget is spent. Exceptions escaping the generator count as faults.
        """
        policy = self.retry_policy
        result = GenerationResponse.failed(GenerationStatus.TERMINAL, "Max retries exceeded")
        attempt = 0

        for attempt in range(1, policy.max_retries + 1):
            result = await self._attempt(request, attempt)

            if result.success:
                break
            if not result.retryable or attempt >= policy.max_retries:
                break

            delay = policy.delay_for(result.status, attempt)
            logger.info(
                f"Generation attempt {attempt}/{policy.max_retries} failed ({result.status.value}), "
                f"retrying in {delay:.1f}s: {result.error}"
            )
            await self._sleep(delay)

        result.metadata["attempts"] = attempt
        return result

    async def _attempt(self, request: GenerationRequest, attempt: int) -> GenerationResponse:
        try:
            if self.attempt_timeout:
                return await asyncio.wait_for(self.generator.generate(request), timeout=self.attempt_timeout)
            return await self.generator.generate(request)
        except asyncio.TimeoutError:
            error = f"Generation timed out after {self.attempt_timeout}s"
        except Exception as e:
            error = str(e) or e.__class__.__name__
        logger.warning(f"Generation attempt {attempt}/{self.retry_policy.max_retries} raised: {error}")
        return GenerationResponse.failed(GenerationStatus.FAULT, error)

    async def run_isolated_generation(self, prompt: str, max_tokens: int = 50) -> GenerationResponse:
        """Run only the generation step (with retries and cleaning), bypassing sessions."""
        parameters = self.parameters.model_copy(update={"max_tokens": max_tokens})
        request = GenerationRequest(prompt=prompt, session_id=TEST_SESSION_ID, parameters=parameters)
        result = await self.generate_with_retries(request)
        if result.success:
            result.content = clean_response(result.content, self.max_response_length, self.truncation_window)
        return result

    def describe(self) -> Dict[str, Any]:
        return {
            "generator": self.generator.name,
            "connections": self.registry.connection_count,
            "pending_pipelines": self.pending_tasks,
        }
