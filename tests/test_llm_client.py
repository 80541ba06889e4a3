"""Tests for generation backends (no network calls)."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from services.llm.client import (
    GeminiGenerator,
    GenerationError,
    OfflineGenerator,
    OpenAICompatibleGenerator,
    check_backend_health,
    get_generator,
)


def _make_gemini(handler) -> GeminiGenerator:
    return GeminiGenerator(
        api_key="test-key",
        model="gemini-test",
        base_url="https://gemini.example/v1beta/",
        transport=httpx.MockTransport(handler),
    )


def _candidate(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


# ── Gemini ──

class TestGeminiGenerator:
    @pytest.mark.asyncio
    async def test_returns_candidate_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_candidate('{"agentSentiment": "Positive"}'))

        text = await _make_gemini(handler).generate("analyze this")

        assert text == '{"agentSentiment": "Positive"}'
        assert seen["url"] == "https://gemini.example/v1beta/models/gemini-test:generateContent"
        assert seen["key"] == "test-key"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "analyze this"
        config = seen["body"]["generationConfig"]
        assert (config["topK"], config["topP"]) == (40, 0.95)

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        gen = _make_gemini(lambda request: httpx.Response(503, json={"error": "overloaded"}))
        with pytest.raises(GenerationError) as exc:
            await gen.generate("x")
        assert "503" in str(exc.value)
        assert isinstance(exc.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GenerationError):
            await _make_gemini(handler).generate("x")

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GenerationError):
            await _make_gemini(handler).generate("x")

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self):
        gen = _make_gemini(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(GenerationError):
            await gen.generate("x")

    @pytest.mark.asyncio
    async def test_missing_candidates_is_empty_reply(self):
        gen = _make_gemini(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
        assert await gen.generate("x") == ""


# ── OpenAI-compatible ──

class TestOpenAICompatibleGenerator:
    def _make_client(self, **create_kwargs) -> MagicMock:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(**create_kwargs)
        return client

    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="rating: 9"))])
        client = self._make_client(return_value=response)
        gen = OpenAICompatibleGenerator(model="qwen-test", client=client)

        assert await gen.generate("prompt") == "rating: 9"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "qwen-test"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_no_choices_is_empty_reply(self):
        client = self._make_client(return_value=SimpleNamespace(choices=[]))
        assert await OpenAICompatibleGenerator(client=client).generate("p") == ""

    @pytest.mark.asyncio
    async def test_api_error_raises(self):
        error = APIConnectionError(request=httpx.Request("POST", "http://localhost:11434/v1/chat/completions"))
        client = self._make_client(side_effect=error)
        with pytest.raises(GenerationError):
            await OpenAICompatibleGenerator(client=client).generate("p")


# ── Selection & Health ──

class TestGeneratorSelection:
    def test_offline(self):
        assert isinstance(get_generator("offline"), OfflineGenerator)

    def test_ollama_alias(self):
        assert isinstance(get_generator("ollama"), OpenAICompatibleGenerator)

    def test_gemini(self):
        assert isinstance(get_generator("Gemini"), GeminiGenerator)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            get_generator("carrier-pigeon")

    @pytest.mark.asyncio
    async def test_offline_reply_is_empty(self):
        assert await OfflineGenerator().generate("anything") == ""


class TestBackendHealth:
    @pytest.mark.asyncio
    async def test_offline(self):
        result = await check_backend_health(OfflineGenerator())
        assert result["status"] == "offline"

    @pytest.mark.asyncio
    async def test_unreachable(self):
        gen = MagicMock()
        gen.name = "gemini"
        gen.generate = AsyncMock(side_effect=GenerationError("down"))
        result = await check_backend_health(gen)
        assert result == {"status": "unreachable", "backend": "gemini", "detail": "down"}

    @pytest.mark.asyncio
    async def test_healthy(self):
        gen = MagicMock()
        gen.name = "openai"
        gen.generate = AsyncMock(return_value="OK")
        result = await check_backend_health(gen)
        assert result["status"] == "healthy"
