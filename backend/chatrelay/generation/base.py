"""
Response Generator Base - Capability interface for reply backends.

A generator turns a prompt (plus optional session context) into text. Every
outcome, including failure, is returned as a GenerationResponse whose status
tag tells the relay whether another attempt is worthwhile.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class GenerationStatus(str, Enum):
    """Classification of one generation attempt."""
    SUCCESS = "success"
    TRANSIENT = "transient"  # backend warming up / loading, retry with exponential backoff
    FAULT = "fault"          # network, timeout or malformed payload, retry with linear backoff
    TERMINAL = "terminal"    # definitive failure, do not retry


class GenerationParameters(BaseModel):
    """Bounded sampling parameters."""
    max_tokens: int = Field(default=150, ge=1, le=2048)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)


@dataclass
class GenerationRequest:
    """Input of a generation call."""
    prompt: str
    session_id: str = ""
    context: Optional[str] = None
    parameters: GenerationParameters = field(default_factory=GenerationParameters)


@dataclass
class GenerationResponse:
    """Outcome of a generation call."""
    status: GenerationStatus
    content: str = ""
    error: Optional[str] = None
    processing_time_ms: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)  # diagnostics only

    @property
    def success(self) -> bool:
        return self.status is GenerationStatus.SUCCESS

    @property
    def retryable(self) -> bool:
        return self.status in (GenerationStatus.TRANSIENT, GenerationStatus.FAULT)

    @classmethod
    def ok(cls, content: str, processing_time_ms: float = 0.0,
           metadata: Optional[Dict[str, Any]] = None) -> "GenerationResponse":
        return cls(GenerationStatus.SUCCESS, content=content,
                   processing_time_ms=processing_time_ms, metadata=metadata or {})

    @classmethod
    def failed(cls, status: GenerationStatus, error: str,
               processing_time_ms: float = 0.0) -> "GenerationResponse":
        return cls(status, error=error, processing_time_ms=processing_time_ms)


def estimate_token_count(text: str) -> int:
    """Rough estimate: one token per four characters of English text."""
    return math.ceil(len(text) / 4.0)


class ResponseGenerator(ABC):
    """
    Abstract base class for reply backends.
    The relay holds exactly one instance and never inspects its concrete type.
    """

    name: str = "generator"

    def __init__(self):
        self._is_ready = False
        self._status = "Not Initialized"

    def is_ready(self) -> bool:
        """Whether the backend can currently serve requests."""
        return self._is_ready

    def status(self) -> str:
        """Human readable backend status."""
        return self._status

    async def initialize(self) -> None:
        """Probe the backend and update readiness. Must not raise."""
        self._is_ready = True
        self._status = "Ready"

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """
        Run one generation attempt.

        Args:
            request: Prompt, session identity, optional context and parameters

        Returns:
            GenerationResponse tagged with the attempt's outcome
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
