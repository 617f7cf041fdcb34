"""
Response Generator Factory - Creates the configured generator instance.
"""

from typing import Optional

from .base import ResponseGenerator
from .huggingface import DEFAULT_BASE_URL, DEFAULT_MODEL, HuggingFaceGenerator
from .static import DEFAULT_STATIC_RESPONSE, StaticGenerator
from .wikipedia import WikipediaSearchGenerator


def create_response_generator(
    backend: str = "wikipedia",
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    system_prompt: str = "",
    timeout: float = 60.0,
    static_response: Optional[str] = None,
) -> ResponseGenerator:
    """
    Create a response generator based on configuration.

    Args:
        backend: Generator name ("wikipedia", "huggingface" or "static")
        api_key: API key for model-backed generators
        model: Model id (uses the generator default if not specified)
        base_url: Custom inference base URL
        system_prompt: System prompt for model-backed generators
        timeout: Per-request timeout in seconds
        static_response: Reply text of the static generator

    Returns:
        ResponseGenerator instance (not yet initialized)
    """
    if backend == "wikipedia":
        return WikipediaSearchGenerator(timeout=timeout)

    if backend == "huggingface":
        return HuggingFaceGenerator(
            api_key=api_key,
            model=model or DEFAULT_MODEL,
            base_url=base_url or DEFAULT_BASE_URL,
            system_prompt=system_prompt,
            timeout=timeout,
        )

    if backend == "static":
        return StaticGenerator(static_response or DEFAULT_STATIC_RESPONSE)

    raise ValueError(f"Unsupported generator backend: {backend}")
