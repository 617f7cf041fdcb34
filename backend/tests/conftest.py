"""
Shared test fixtures and configuration.
"""

import pytest
import os
from typing import List, Optional

# Set test environment variables before importing chatrelay modules
os.environ.setdefault("GENERATOR_BACKEND", "static")
os.environ.setdefault("STORAGE_TYPE", "memory")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/chatrelay_test_data")

from chatrelay.core.registry import ClientConnection, ConnectionRegistry
from chatrelay.core.relay import RetryPolicy, SessionRelay
from chatrelay.generation.base import GenerationRequest, GenerationResponse, ResponseGenerator
from chatrelay.models.events import ServerEvent
from chatrelay.storage import InMemorySessionStore


class FakeConnection(ClientConnection):
    """Connection that records every event it receives."""

    def __init__(self, connection_id: str, fail: bool = False):
        self.connection_id = connection_id
        self.fail = fail
        self.events: List[ServerEvent] = []

    async def send(self, event: ServerEvent) -> None:
        if self.fail:
            raise ConnectionError("link is gone")
        self.events.append(event)

    def names(self) -> List[str]:
        return [e.name for e in self.events]

    def of(self, name: str) -> List[ServerEvent]:
        return [e for e in self.events if e.name == name]


class ScriptedGenerator(ResponseGenerator):
    """Generator replaying a list of responses (or exceptions) in order."""

    name = "scripted"

    def __init__(self, outcomes: Optional[list] = None, default: str = "Hi there"):
        super().__init__()
        self._is_ready = True
        self._status = "Ready - Scripted"
        self.outcomes = list(outcomes or [])
        self.default = default
        self.requests: List[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return GenerationResponse.ok(self.default, metadata={"provider": "Scripted"})

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def relay(store, registry, generator, sleeps):
    async def record_sleep(delay):
        sleeps.append(delay)

    return SessionRelay(
        store=store,
        registry=registry,
        generator=generator,
        retry_policy=RetryPolicy(max_retries=3, backoff_seconds=1.0),
        sleep=record_sleep,
    )
