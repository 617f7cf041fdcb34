"""
Hugging Face Inference API generator.
Builds a model-family specific prompt, posts it to the hosted inference
endpoint and classifies the outcome for the relay's retry driver.
"""

import httpx
import logging
import time
from typing import Any, Dict, Optional

from .base import (
    GenerationRequest, GenerationResponse, GenerationStatus, ResponseGenerator,
    estimate_token_count,
)
from ..core.logging_config import truncate_large_data

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "HuggingFaceH4/zephyr-7b-beta"
DEFAULT_BASE_URL = "https://api-inference.huggingface.co/models"
MODEL_INFO_URL = "https://huggingface.co/api/models"
USER_AGENT = "ChatRelay/1.0"


def build_prompt(model_id: str, system_prompt: str, request: GenerationRequest) -> str:
    """Format the prompt with the chat markup the model family expects."""
    context = (request.context or "").strip()
    system_prompt = (system_prompt or "").strip()

    if "mistral" in model_id.lower():
        parts = ["<s>[INST] "]
        if system_prompt:
            parts.append(system_prompt + " ")
        if context:
            parts.append(f"Context: {context} ")
        parts.append(request.prompt)
        parts.append(" [/INST]")
        return "".join(parts)

    if "zephyr" in model_id or "neural-chat" in model_id:
        lines = ["<|system|>"]
        if system_prompt:
            lines.append(system_prompt)
        lines.append("<|user|>")
        if context:
            lines.append(f"Context: {context}")
        lines.append(request.prompt)
        return "\n".join(lines) + "\n<|assistant|>"

    if "openchat" in model_id:
        prefix = f"Context: {context} " if context else ""
        return f"GPT4 Correct User: {prefix}{request.prompt}<|end_of_turn|>GPT4 Correct Assistant:"

    if "DialoGPT" in model_id or "blenderbot" in model_id:
        return f"{context}\n{request.prompt}" if context else request.prompt

    lines = []
    if system_prompt:
        lines += [system_prompt, ""]
    if context:
        lines += [f"Context: {context}", ""]
    lines.append(f"Human: {request.prompt}")
    return "\n".join(lines) + "\nAssistant:"


def extract_generated_text(data: Any) -> Optional[str]:
    """Pull generated text out of a list or object inference payload."""
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return None
    if data.get("generated_text") is not None:
        return data["generated_text"]
    responses = (data.get("conversation") or {}).get("generated_responses") or []
    if responses:
        return responses[0]
    return None


class HuggingFaceGenerator(ResponseGenerator):
    """
    Generator backed by the Hugging Face hosted inference API.
    A "model is loading" answer is reported as TRANSIENT, transport problems
    as FAULT and every other API error as TERMINAL.
    """

    name = "huggingface"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        system_prompt: str = "",
        timeout: float = 60.0,
        skip_initial_test: bool = False,
    ):
        super().__init__()
        self.api_key = api_key or ""
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.system_prompt = system_prompt
        self.timeout = timeout
        self.skip_initial_test = skip_initial_test

    def _get_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT, "Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def initialize(self) -> None:
        logger.info(f"Initializing Hugging Face generator: model={self.model}, api_base={self.base_url}")

        if not self.api_key:
            self._is_ready = False
            self._status = "Error: Missing Hugging Face API key"
            logger.error("Hugging Face API key is not configured")
            return

        try:
            self._status = "Testing API connection..."
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(f"{MODEL_INFO_URL}/{self.model}", headers=self._get_headers())
            if not resp.is_success:
                self._is_ready = False
                self._status = "Error: API connection failed"
                logger.error(f"Hugging Face model info request failed with status {resp.status_code}")
                return

            if self.skip_initial_test:
                self._is_ready = True
                self._status = f"Ready (Hugging Face API - {self.model}) - Test Skipped"
                return

            self._status = "Testing model availability..."
            probe = await self._call_api({
                "inputs": "Hello, this is a test.",
                "parameters": {"max_new_tokens": 10, "temperature": 0.1, "do_sample": True,
                               "return_full_text": False},
                "options": {"wait_for_model": True, "use_cache": False},
            })
            # A cold-starting model fails the probe but will serve requests shortly
            self._is_ready = True
            if probe.success:
                self._status = f"Ready (Hugging Face API - {self.model})"
            else:
                self._status = f"Ready (Hugging Face API - {self.model}) - Test Failed but Service Active"
                logger.warning(f"Model availability test failed for {self.model}: {probe.error}")
        except Exception as e:
            self._is_ready = False
            self._status = f"Error: {e}"
            logger.error(f"Failed to initialize Hugging Face generator: {e}", exc_info=True)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        start_time = time.time()

        if not self._is_ready:
            return GenerationResponse.failed(GenerationStatus.TERMINAL, self._status)

        prompt = build_prompt(self.model, self.system_prompt, request)
        params = request.parameters
        payload: Dict[str, Any] = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": params.max_tokens,
                "temperature": params.temperature,
                "top_p": params.top_p,
                "repetition_penalty": 1.1,
                "do_sample": True,
                "return_full_text": False,
            },
            "options": {"wait_for_model": True, "use_cache": True},
        }

        logger.debug(f"Hugging Face request: model={self.model}, prompt={prompt[:100]}...")
        result = await self._call_api(payload)
        result.processing_time_ms = (time.time() - start_time) * 1000

        if not result.success:
            return result

        content = result.content
        if content.startswith(prompt):
            content = content[len(prompt):]
        content = content.strip()

        result.content = content
        result.metadata.update({
            "model": self.model,
            "provider": "HuggingFace API",
            "tokens_generated": estimate_token_count(content),
            "session_id": request.session_id,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        })
        return result

    async def _call_api(self, payload: Dict[str, Any]) -> GenerationResponse:
        """Post one inference request and classify the answer."""
        start_time = time.time()
        url = f"{self.base_url}/{self.model}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
        except httpx.TimeoutException:
            return GenerationResponse.failed(
                GenerationStatus.FAULT, f"Request timed out after {self.timeout}s",
                (time.time() - start_time) * 1000,
            )
        except httpx.HTTPError as e:
            return GenerationResponse.failed(
                GenerationStatus.FAULT, f"Connection error: {e}", (time.time() - start_time) * 1000
            )

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Hugging Face response status: {resp.status_code}, "
            f"body: {truncate_large_data(resp.text, max_length=500)}"
        )

        if resp.is_success:
            try:
                data = resp.json()
            except ValueError:
                return GenerationResponse.failed(GenerationStatus.FAULT, "Malformed response body", elapsed_ms)
            text = extract_generated_text(data)
            if text is None:
                return GenerationResponse.failed(GenerationStatus.FAULT, "No valid response content", elapsed_ms)
            return GenerationResponse.ok(text, elapsed_ms, {"api_response_time_ms": round(elapsed_ms, 2)})

        try:
            body = resp.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("error"):
            error = str(body["error"])
            estimated_time = body.get("estimated_time")
        else:
            error = f"API error: {resp.status_code} - {truncate_large_data(resp.text, max_length=200)}"
            estimated_time = None

        if estimated_time:
            error += f" (Model loading, estimated time: {estimated_time}s)"

        if "loading" in error.lower():
            return GenerationResponse.failed(GenerationStatus.TRANSIENT, error, elapsed_ms)
        return GenerationResponse.failed(GenerationStatus.TERMINAL, error, elapsed_ms)
