"""Generation module - capability interface and backends that produce replies."""

from .base import (
    GenerationParameters, GenerationRequest, GenerationResponse, GenerationStatus,
    ResponseGenerator,
)
from .huggingface import HuggingFaceGenerator
from .wikipedia import WikipediaSearchGenerator
from .static import StaticGenerator
from .factory import create_response_generator

__all__ = [
    'GenerationParameters',
    'GenerationRequest',
    'GenerationResponse',
    'GenerationStatus',
    'ResponseGenerator',
    'HuggingFaceGenerator',
    'WikipediaSearchGenerator',
    'StaticGenerator',
    'create_response_generator',
]
