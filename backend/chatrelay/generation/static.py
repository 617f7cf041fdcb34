"""
Static responder - always ready, always answers with the same text.
"""

import time

from .base import GenerationRequest, GenerationResponse, ResponseGenerator

DEFAULT_STATIC_RESPONSE = "Thanks for your message! This relay is running with a static responder."


class StaticGenerator(ResponseGenerator):
    """Generator returning a fixed reply; used for offline runs and wiring checks."""

    name = "static"

    def __init__(self, response_text: str = DEFAULT_STATIC_RESPONSE):
        super().__init__()
        self.response_text = response_text
        self._is_ready = True
        self._status = "Ready - Static Responder"

    async def initialize(self) -> None:
        self._is_ready = True
        self._status = "Ready - Static Responder"

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        start_time = time.time()
        return GenerationResponse.ok(
            self.response_text,
            (time.time() - start_time) * 1000,
            {"provider": "Static", "session_id": request.session_id},
        )
