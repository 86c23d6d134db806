"""Generation backend: HTTP connection to a text-completion service.

The core depends only on the GenerationBackend protocol:

    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...

generate() never raises. Connection, timeout, HTTP and shape failures come
back as GenerationResponse(success=False, error=...), so callers can always
degrade instead of crashing the tick.

Two implementations are provided:

    HttpBackend  — real HTTP client, supports Ollama and OpenAI-compatible
                   backends. Selected by provider.
    EchoBackend  — returns the prompt back unchanged. Useful for smoke-testing
                   the wiring without a running model.

Tests use StubBackend (defined in conftest.py) instead.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Literal, Protocol

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response shapes
# ---------------------------------------------------------------------------

class GenerationRequest(BaseModel):
    prompt: str
    format: Literal["json", "text"] | None = None
    model: str | None = None  # overrides the backend's default model


class GenerationMetadata(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    duration_seconds: float | None = None


class GenerationResponse(BaseModel):
    success: bool
    content: str = ""
    error: str | None = None
    metadata: GenerationMetadata | None = None


# ---------------------------------------------------------------------------
# Protocol: every backend implementation must match this signature
# ---------------------------------------------------------------------------

class GenerationBackend(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...


# ---------------------------------------------------------------------------
# HttpBackend: connects to a real service
# ---------------------------------------------------------------------------

Provider = Literal["ollama", "openai"]


class HttpBackend:
    """Async HTTP client for text-completion backends.

    Supported providers:
      "ollama"  — POST /api/generate    {"model", "prompt", "stream": false, "format"?}
                  Response: {"response": "...", "prompt_eval_count", "eval_count",
                             "total_duration" (nanoseconds)}
      "openai"  — POST /v1/completions  {"model", "prompt"}
                  Response: {"choices": [{"text": "..."}], "usage": {...}}

    Args:
        base_url:  Base URL of the backend, e.g. "http://localhost:11434".
        provider:  Wire format to use. Defaults to "ollama".
        model:     Default model identifier; a request's `model` overrides it.
        api_key:   Bearer token, or empty string if not required.
        timeout:   HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        base_url: str,
        provider: Provider = "ollama",
        model: str = "",
        api_key: str = "",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._provider = provider
        self._model = model
        self._api_key = api_key
        self._timeout = timeout

    @classmethod
    def from_config(cls, llm_config: dict[str, Any]) -> HttpBackend:
        return cls(
            base_url=llm_config["base_url"],
            provider=llm_config.get("provider", "ollama"),
            model=llm_config.get("model", ""),
            api_key=llm_config.get("api_key", ""),
            timeout=float(llm_config.get("timeout", 120.0)),
        )

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, request: GenerationRequest) -> tuple[str, dict]:
        """Return (url, body) for the configured provider."""
        model = request.model or self._model
        if self._provider == "openai":
            url = f"{self._base_url}/v1/completions"
            body: dict = {"prompt": request.prompt}
            if model:
                body["model"] = model
            return url, body

        # ollama (default)
        url = f"{self._base_url}/api/generate"
        body = {"model": model, "prompt": request.prompt, "stream": False}
        if request.format == "json":
            body["format"] = "json"
        return url, body

    def _parse_response(self, data: dict, elapsed: float) -> tuple[str, GenerationMetadata]:
        """Extract the completion text and token/duration metadata."""
        if self._provider == "openai":
            choices = data.get("choices")
            first = choices[0] if isinstance(choices, list) and choices else None
            if not isinstance(first, dict) or "text" not in first:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            usage = data.get("usage") or {}
            return choices[0]["text"], GenerationMetadata(
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
                duration_seconds=elapsed,
            )

        # ollama
        text = data.get("response")
        if not isinstance(text, str):
            raise LLMError("Unexpected response format from Ollama backend")
        prompt_tokens = data.get("prompt_eval_count")
        completion_tokens = data.get("eval_count")
        total = None
        if prompt_tokens is not None and completion_tokens is not None:
            total = prompt_tokens + completion_tokens
        duration_ns = data.get("total_duration")
        return text, GenerationMetadata(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total,
            duration_seconds=duration_ns / 1e9 if duration_ns is not None else elapsed,
        )

    async def _post(self, request: GenerationRequest) -> GenerationResponse:
        url, body = self._build_request(request)
        logger.debug("llm call url=%s model=%s prompt_len=%d", url, body.get("model"), len(request.prompt))

        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise LLMError("LLM backend returned an unexpected body")

        try:
            text, metadata = self._parse_response(data, time.monotonic() - started)
            result = GenerationResponse(success=True, content=text, metadata=metadata)
        except (AttributeError, TypeError, KeyError, IndexError, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            raise LLMError(f"Unexpected response shape from LLM backend: {e}") from e
        logger.debug("llm response len=%d", len(result.content))
        return result

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        try:
            return await self._post(request)
        except LLMError as e:
            logger.error("Generation failed: %s", e)
            return GenerationResponse(success=False, error=str(e))
        except httpx.HTTPError as e:
            logger.error("Generation failed: %s", e)
            return GenerationResponse(success=False, error=f"HTTP error: {e}")


# ---------------------------------------------------------------------------
# EchoBackend: returns the prompt unchanged; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoBackend:
    """Returns the prompt text as-is. No network calls.

    The output won't be valid JSON for structured requests, so narration
    falls back to the diagnostic output; use StubBackend in tests when you
    need controlled responses.
    """

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        logger.debug("EchoBackend prompt_len=%d", len(request.prompt))
        return GenerationResponse(success=True, content=request.prompt)


# ---------------------------------------------------------------------------
# LLMError: raised inside HttpBackend for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
