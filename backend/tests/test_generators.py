"""
Unit tests for the response generators.
Tests prompt building, outcome classification and the factory.
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from chatrelay.generation import (
    GenerationRequest, GenerationResponse, GenerationStatus, HuggingFaceGenerator,
    StaticGenerator, WikipediaSearchGenerator, create_response_generator,
)
from chatrelay.generation.huggingface import build_prompt, extract_generated_text
from chatrelay.generation.wikipedia import (
    EXTRACT_LIMIT, alternative_queries, clean_search_query, format_results, no_results_message,
)


def mock_http_response(status_code=200, json_data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    response.raise_for_status = MagicMock()
    return response


def mock_async_client(mock_client, **methods):
    mock_instance = AsyncMock()
    for name, value in methods.items():
        method = getattr(mock_instance, name)
        if isinstance(value, (list, Exception)):
            method.side_effect = value
        else:
            method.return_value = value
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=False)
    mock_client.return_value = mock_instance
    return mock_instance


def ready_generator(**kwargs):
    generator = HuggingFaceGenerator(api_key="hf-test-key", **kwargs)
    generator._is_ready = True
    return generator


class TestGenerationResponse:

    def test_ok(self):
        resp = GenerationResponse.ok("Hi")
        assert resp.success
        assert not resp.retryable
        assert resp.metadata == {}

    def test_retryable_statuses(self):
        assert GenerationResponse.failed(GenerationStatus.TRANSIENT, "x").retryable
        assert GenerationResponse.failed(GenerationStatus.FAULT, "x").retryable
        assert not GenerationResponse.failed(GenerationStatus.TERMINAL, "x").retryable


class TestBuildPrompt:

    def test_zephyr_template(self):
        request = GenerationRequest(prompt="Hello", context="User: earlier")
        prompt = build_prompt("HuggingFaceH4/zephyr-7b-beta", "Be nice.", request)

        assert prompt.startswith("<|system|>\nBe nice.\n<|user|>")
        assert "Context: User: earlier" in prompt
        assert prompt.endswith("Hello\n<|assistant|>")

    def test_mistral_template(self):
        prompt = build_prompt("mistralai/Mistral-7B-Instruct", "Be nice.", GenerationRequest(prompt="Hi"))
        assert prompt == "<s>[INST] Be nice. Hi [/INST]"

    def test_openchat_template(self):
        prompt = build_prompt("openchat/openchat-3.5", "", GenerationRequest(prompt="Hi"))
        assert prompt == "GPT4 Correct User: Hi<|end_of_turn|>GPT4 Correct Assistant:"

    def test_dialogpt_template(self):
        prompt = build_prompt("microsoft/DialoGPT-medium", "ignored", GenerationRequest(prompt="Hi"))
        assert prompt == "Hi"

    def test_generic_template(self):
        prompt = build_prompt("gpt2", "Be nice.", GenerationRequest(prompt="Hi"))
        assert prompt == "Be nice.\n\nHuman: Hi\nAssistant:"


class TestExtractGeneratedText:

    def test_list_payload(self):
        assert extract_generated_text([{"generated_text": "Hi"}]) == "Hi"

    def test_object_payload(self):
        assert extract_generated_text({"generated_text": "Hi"}) == "Hi"

    def test_conversation_payload(self):
        data = {"conversation": {"generated_responses": ["Hey"]}}
        assert extract_generated_text(data) == "Hey"

    def test_unusable_payload(self):
        assert extract_generated_text([]) is None
        assert extract_generated_text("text") is None
        assert extract_generated_text({"other": 1}) is None


class TestHuggingFaceGenerator:
    """Tests for HuggingFaceGenerator."""

    @pytest.mark.asyncio
    async def test_initialize_without_key(self):
        generator = HuggingFaceGenerator(api_key=None)
        await generator.initialize()

        assert not generator.is_ready()
        assert generator.status() == "Error: Missing Hugging Face API key"

    @pytest.mark.asyncio
    async def test_initialize_ready_even_when_probe_fails(self):
        generator = HuggingFaceGenerator(api_key="hf-test-key")
        info = mock_http_response(200, {"id": "model"})
        probe = mock_http_response(503, {"error": "Model is currently loading", "estimated_time": 20})

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, get=info, post=probe)
            await generator.initialize()

        assert generator.is_ready()
        assert "Test Failed but Service Active" in generator.status()

    @pytest.mark.asyncio
    async def test_initialize_model_info_failure(self):
        generator = HuggingFaceGenerator(api_key="hf-test-key")

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, get=mock_http_response(401, {"error": "Unauthorized"}))
            await generator.initialize()

        assert not generator.is_ready()
        assert generator.status() == "Error: API connection failed"

    @pytest.mark.asyncio
    async def test_generate_not_ready_is_terminal(self):
        generator = HuggingFaceGenerator(api_key=None)
        await generator.initialize()

        resp = await generator.generate(GenerationRequest(prompt="Hello"))

        assert resp.status is GenerationStatus.TERMINAL
        assert "Missing Hugging Face API key" in resp.error

    @pytest.mark.asyncio
    async def test_generate_success(self):
        generator = ready_generator(model="gpt2")
        payload = [{"generated_text": "  Hi there!  "}]

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(mock_client, post=mock_http_response(200, payload))
            resp = await generator.generate(GenerationRequest(prompt="Hello", session_id="s1"))

        assert resp.success
        assert resp.content == "Hi there!"
        assert resp.metadata["model"] == "gpt2"
        assert resp.metadata["session_id"] == "s1"
        assert resp.metadata["provider"] == "HuggingFace API"

        sent = instance.post.call_args.kwargs["json"]
        assert sent["parameters"]["max_new_tokens"] == 150
        assert sent["parameters"]["return_full_text"] is False
        headers = instance.post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer hf-test-key"

    @pytest.mark.asyncio
    async def test_generate_strips_echoed_prompt(self):
        generator = ready_generator(model="gpt2")
        prompt = build_prompt("gpt2", "", GenerationRequest(prompt="Hello"))

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, post=mock_http_response(200, [{"generated_text": prompt + " Hey"}]))
            resp = await generator.generate(GenerationRequest(prompt="Hello"))

        assert resp.content == "Hey"

    @pytest.mark.asyncio
    async def test_loading_is_transient(self):
        generator = ready_generator()
        body = {"error": "Model HuggingFaceH4/zephyr-7b-beta is currently loading", "estimated_time": 30.0}

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, post=mock_http_response(503, body))
            resp = await generator.generate(GenerationRequest(prompt="Hello"))

        assert resp.status is GenerationStatus.TRANSIENT
        assert "estimated time: 30.0s" in resp.error

    @pytest.mark.asyncio
    async def test_other_api_error_is_terminal(self):
        generator = ready_generator()

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, post=mock_http_response(400, ValueError("not json"), text="Bad input"))
            resp = await generator.generate(GenerationRequest(prompt="Hello"))

        assert resp.status is GenerationStatus.TERMINAL
        assert resp.error == "API error: 400 - Bad input"

    @pytest.mark.asyncio
    async def test_timeout_is_fault(self):
        generator = ready_generator(timeout=5)

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, post=httpx.ReadTimeout("slow"))
            resp = await generator.generate(GenerationRequest(prompt="Hello"))

        assert resp.status is GenerationStatus.FAULT
        assert "timed out" in resp.error

    @pytest.mark.asyncio
    async def test_connection_error_is_fault(self):
        generator = ready_generator()

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, post=httpx.ConnectError("refused"))
            resp = await generator.generate(GenerationRequest(prompt="Hello"))

        assert resp.status is GenerationStatus.FAULT
        assert resp.error.startswith("Connection error")

    @pytest.mark.asyncio
    async def test_malformed_payload_is_fault(self):
        generator = ready_generator()

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, post=mock_http_response(200, {"unexpected": True}))
            resp = await generator.generate(GenerationRequest(prompt="Hello"))

        assert resp.status is GenerationStatus.FAULT
        assert resp.error == "No valid response content"


class TestWikipediaHelpers:

    def test_clean_search_query(self):
        assert clean_search_query("Hello, what is the universe?") == "Universe"
        assert clean_search_query("Tell me about black holes") == "Black hole"
        assert clean_search_query("who is ada lovelace?") == "Ada lovelace"
        assert clean_search_query("?") == "Wikipedia"

    def test_alternative_queries(self):
        alternatives = alternative_queries("who is the best computer scientist")
        assert alternatives[:2] == ["best computer scientist", "Best computer scientist"]
        assert "Alan Turing" in alternatives
        assert len(alternatives) == len(set(alternatives))

    def test_no_results_message(self):
        message = no_results_message("obscure history thing")
        assert "obscure history thing" in message
        assert "World War II" in message

    def test_format_results_caps_extracts(self):
        results = [{"title": "Gravity", "extract": "g" * 500, "url": "https://en.wikipedia.org/wiki/Gravity"}]
        text = format_results("gravity", results)

        assert text.startswith('Wikipedia results for "gravity":')
        assert "1. Gravity - " + "g" * EXTRACT_LIMIT + "..." in text
        assert "Read more: https://en.wikipedia.org/wiki/Gravity" in text


class TestWikipediaSearchGenerator:
    """Tests for WikipediaSearchGenerator."""

    @pytest.mark.asyncio
    async def test_initialize(self):
        generator = WikipediaSearchGenerator()

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, get=mock_http_response(200, {}))
            await generator.initialize()

        assert generator.is_ready()
        assert generator.status() == "Ready - Wikipedia Search Engine"

    @pytest.mark.asyncio
    async def test_initialize_unreachable(self):
        generator = WikipediaSearchGenerator()

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, get=httpx.ConnectError("offline"))
            await generator.initialize()

        assert not generator.is_ready()
        assert generator.status().startswith("Error:")

    @pytest.mark.asyncio
    async def test_generate_with_results(self):
        generator = WikipediaSearchGenerator(max_results=1)
        search = mock_http_response(200, [
            "Gravity", ["Gravity"], ["Fundamental interaction"], ["https://en.wikipedia.org/wiki/Gravity"],
        ])
        extract = mock_http_response(200, {"query": {"pages": {"1": {"extract": "Gravity attracts mass."}}}})

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, get=[search, extract])
            resp = await generator.generate(GenerationRequest(prompt="What is gravity?"))

        assert resp.success
        assert "1. Gravity - Gravity attracts mass." in resp.content
        assert resp.metadata["results_count"] == 1
        assert resp.metadata["search_strategy"] == "direct"

    @pytest.mark.asyncio
    async def test_generate_without_results(self):
        generator = WikipediaSearchGenerator()
        empty = mock_http_response(200, ["xyzzy", [], [], []])

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, get=empty)
            resp = await generator.generate(GenerationRequest(prompt="xyzzy"))

        assert resp.success
        assert resp.content.startswith("I couldn't find any Wikipedia articles")
        assert resp.metadata["results_count"] == 0

    @pytest.mark.asyncio
    async def test_generate_timeout_is_fault(self):
        generator = WikipediaSearchGenerator()

        with patch("httpx.AsyncClient") as mock_client:
            mock_async_client(mock_client, get=httpx.ReadTimeout("slow"))
            resp = await generator.generate(GenerationRequest(prompt="gravity"))

        assert resp.status is GenerationStatus.FAULT


class TestStaticGenerator:

    @pytest.mark.asyncio
    async def test_always_answers(self):
        generator = StaticGenerator("Fixed reply")
        resp = await generator.generate(GenerationRequest(prompt="anything", session_id="s1"))

        assert generator.is_ready()
        assert resp.content == "Fixed reply"
        assert resp.metadata["session_id"] == "s1"


class TestFactory:

    def test_create_wikipedia(self):
        assert isinstance(create_response_generator("wikipedia"), WikipediaSearchGenerator)

    def test_create_huggingface(self):
        generator = create_response_generator("huggingface", api_key="key", model="gpt2")
        assert isinstance(generator, HuggingFaceGenerator)
        assert generator.model == "gpt2"
        assert generator.api_key == "key"

    def test_create_static(self):
        generator = create_response_generator("static", static_response="Pong")
        assert isinstance(generator, StaticGenerator)
        assert generator.response_text == "Pong"

    def test_create_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_response_generator("unsupported")
