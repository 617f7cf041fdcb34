"""
Configuration Settings.
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "ChatRelay"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False

    # Storage
    storage_type: str = "memory"  # memory, local
    local_storage_path: str = "./data"

    # Response generator selection
    generator_backend: str = "wikipedia"  # "wikipedia", "huggingface" or "static"
    huggingface_api_key: Optional[str] = None
    huggingface_model_id: str = "HuggingFaceH4/zephyr-7b-beta"
    huggingface_base_url: str = "https://api-inference.huggingface.co/models"
    system_prompt: str = (
        "You are ChatRelay, a helpful and knowledgeable AI assistant. "
        "Provide clear, accurate, and engaging responses to user questions and conversations."
    )
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    static_response_text: str = "Thanks for your message! This relay is running with a static responder."

    # Generation defaults
    default_max_tokens: int = Field(default=150, ge=1, le=2048)
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    default_top_p: float = Field(default=0.9, ge=0.0, le=1.0)

    # Relay behaviour
    max_retries: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=1.0, ge=0.0)
    retry_jitter_seconds: float = Field(default=0.0, ge=0.0)
    max_response_length: int = Field(default=800, ge=50)
    truncation_window: int = Field(default=200, ge=0)
    context_history_messages: int = Field(default=6, ge=0)
    attempt_timeout_seconds: Optional[float] = None  # extra guard on top of the generator timeout

    # Query paging
    default_message_page_size: int = 50
    default_session_page_size: int = 20

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/chatrelay.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log HTTP requests and websocket lifecycles

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
