"""
Diagnostics API endpoints - Generator status and an isolated generation round trip.

These bypass sessions entirely and are meant for operators checking a deployment.
"""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from typing import Optional

from ..config import settings
from ..core.relay import APOLOGY_MESSAGE, SessionRelay
from .dependencies import get_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/test", tags=["diagnostics"])

DEFAULT_TEST_PROMPT = "Hello, how are you?"


class ProbeChatRequest(BaseModel):
    message: Optional[str] = None


@router.get("/status")
async def generator_status(relay: SessionRelay = Depends(get_relay)):
    """Report whether the response generator is loaded."""
    return {
        "isModelLoaded": relay.generator.is_ready(),
        "modelStatus": relay.generator.status(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/chat")
async def test_chat(
    body: Optional[ProbeChatRequest] = None,
    relay: SessionRelay = Depends(get_relay),
):
    """
    Run one generation (with retries) outside any session.

    Args:
        body: Optional prompt; a greeting is used when omitted

    Returns:
        Outcome of the generation, with the apology text when it failed
    """
    prompt = (body.message if body and body.message else None) or DEFAULT_TEST_PROMPT
    logger.info(f"Testing generator with prompt: {prompt[:50]}")

    try:
        result = await relay.run_isolated_generation(prompt)
    except Exception as e:
        logger.error(f"Error in test chat: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Test chat failed: {e}",
        )

    return {
        "success": result.success,
        "response": result.content if result.success else APOLOGY_MESSAGE,
        "error": result.error,
        "processingTimeMs": result.processing_time_ms,
        "metadata": result.metadata,
    }


@router.get("/env")
async def environment_info(relay: SessionRelay = Depends(get_relay)):
    """Show which backend is configured without exposing secrets."""
    return {
        "hasApiKey": bool(settings.huggingface_api_key),
        "backend": relay.generator.name,
        "environment": settings.environment,
    }
