"""
ChatRelay - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import chat_router, sessions_router, diagnostics_router
from .core import ConnectionRegistry, RetryPolicy, SessionEvents, SessionRelay
from .core.logging_config import setup_logging
from .generation import GenerationParameters, create_response_generator
from .middleware import RequestLoggingMiddleware
from .models import ServerEvent
from .storage import LocalSessionStore, create_session_store

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


def build_relay(store, generator, registry: ConnectionRegistry, events: SessionEvents) -> SessionRelay:
    """Wire a SessionRelay from the application settings."""
    return SessionRelay(
        store=store,
        registry=registry,
        generator=generator,
        retry_policy=RetryPolicy(
            max_retries=settings.max_retries,
            backoff_seconds=settings.retry_backoff_seconds,
            jitter_seconds=settings.retry_jitter_seconds,
        ),
        parameters=GenerationParameters(
            max_tokens=settings.default_max_tokens,
            temperature=settings.default_temperature,
            top_p=settings.default_top_p,
        ),
        max_response_length=settings.max_response_length,
        truncation_window=settings.truncation_window,
        context_history_messages=settings.context_history_messages,
        attempt_timeout=settings.attempt_timeout_seconds,
        events=events,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    store = create_session_store(settings.storage_type, settings.local_storage_path)
    if isinstance(store, LocalSessionStore):
        await store.load()
    logger.info(f"Session store initialized: {settings.storage_type}")

    registry = ConnectionRegistry()
    session_events = SessionEvents()

    async def broadcast_session_change(session_id: str, change: str) -> None:
        await registry.broadcast(session_id, ServerEvent.session_updated(session_id, change))

    session_events.subscribe(broadcast_session_change)

    generator = create_response_generator(
        backend=settings.generator_backend,
        api_key=settings.huggingface_api_key,
        model=settings.huggingface_model_id,
        base_url=settings.huggingface_base_url,
        system_prompt=settings.system_prompt,
        timeout=settings.request_timeout_seconds,
        static_response=settings.static_response_text,
    )
    await generator.initialize()
    logger.info(f"Response generator '{generator.name}': {generator.status()}")

    relay = build_relay(store, generator, registry, session_events)

    app.state.store = store
    app.state.registry = registry
    app.state.session_events = session_events
    app.state.generator = generator
    app.state.relay = relay

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    await relay.shutdown()
    await generator.aclose()
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Session-scoped real-time chat relay with pluggable response generators",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(chat_router)
app.include_router(sessions_router)
app.include_router(diagnostics_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "message": "ChatRelay is running. Connect to /ws/chat to start chatting."
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    relay = getattr(app.state, "relay", None)
    return {
        "status": "healthy",
        "storage": settings.storage_type,
        "version": settings.app_version,
        "generator": relay.describe() if relay else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chatrelay.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
