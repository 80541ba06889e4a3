"""Generation backends — one request in, freeform text out.

Every backend exposes ``async generate(prompt) -> str``. Network, timeout and
HTTP status failures are raised as ``GenerationError``; whatever text comes back,
however malformed, is returned as-is for the interpreter to deal with.
"""

from typing import Protocol

import httpx
from loguru import logger
from openai import APIError, AsyncOpenAI

from config import settings


class GenerationError(RuntimeError):
    """The backend could not be reached or refused the request."""


class TextGenerator(Protocol):
    name: str

    async def generate(self, prompt: str) -> str:
        ...


def build_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.LLM_CONNECT_TIMEOUT,
        read=settings.LLM_READ_TIMEOUT,
        write=settings.LLM_WRITE_TIMEOUT,
        pool=settings.LLM_CONNECT_TIMEOUT,
    )


class GeminiGenerator:
    """Gemini ``generateContent`` over REST."""

    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_API_URL).rstrip("/")
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    def _body(self, prompt: str) -> dict:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": settings.LLM_TEMPERATURE,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": settings.LLM_MAX_OUTPUT_TOKENS,
            },
        }

    async def generate(self, prompt: str) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=build_timeout(), transport=self._transport) as client:
                resp = await client.post(url, headers=self._headers(), json=self._body(prompt))
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gemini returned HTTP {e.response.status_code}")
            raise GenerationError(f"Gemini request failed with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {e!r}")
            raise GenerationError(f"Gemini request failed: {e!r}") from e
        except ValueError as e:
            # 2xx with a body that is not JSON at all
            raise GenerationError("Gemini returned a non-JSON response body") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Gemini response has no candidate text (blocked or empty)")
            return ""

        logger.info(f"Received {len(text)} chars from Gemini ({self.model})")
        return text or ""


class OpenAICompatibleGenerator:
    """Chat completion against any OpenAI-compatible endpoint (OpenAI, Ollama, vLLM)."""

    name = "openai"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model or settings.OPENAI_MODEL
        self._client = client or AsyncOpenAI(
            base_url=base_url or settings.OPENAI_BASE_URL,
            api_key=api_key or settings.OPENAI_API_KEY,
            timeout=build_timeout(),
            max_retries=0,
        )

    async def generate(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
            )
        except APIError as e:
            logger.error(f"LLM request to {self.model} failed: {e}")
            raise GenerationError(f"LLM request failed: {e}") from e

        if not response.choices:
            logger.warning(f"LLM {self.model} returned no choices")
            return ""
        return response.choices[0].message.content or ""


class OfflineGenerator:
    """No backend at all. The engine then runs on transcript heuristics alone."""

    name = "offline"

    async def generate(self, prompt: str) -> str:
        return ""


def get_generator(provider: str | None = None) -> TextGenerator:
    """Build the generation backend for a provider name.

    Args:
        provider: "gemini", "openai" (alias "ollama") or "offline" (alias
            "none"). Case-insensitive. Defaults to LLM_PROVIDER.

    Returns:
        A TextGenerator ready to call.

    Raises:
        ValueError: If the provider name is not recognised.
    """
    provider = (provider or settings.LLM_PROVIDER).lower()
    if provider == "gemini":
        if not settings.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY is not set, requests will be rejected")
        return GeminiGenerator()
    if provider in ("openai", "ollama"):
        return OpenAICompatibleGenerator()
    if provider in ("offline", "none"):
        return OfflineGenerator()
    raise ValueError(f"Unknown LLM_PROVIDER '{provider}' (expected gemini, openai or offline)")


async def check_backend_health(generator: TextGenerator) -> dict:
    """Cheap reachability probe for the configured backend."""
    if isinstance(generator, OfflineGenerator):
        return {"status": "offline", "backend": generator.name}
    try:
        await generator.generate("Reply with OK.")
        return {"status": "healthy", "backend": generator.name}
    except GenerationError as e:
        return {"status": "unreachable", "backend": generator.name, "detail": str(e)}
