"""Ollama client — HTTP connection to the local language-model server.

Endpoints used:

    GET  /api/tags       → {"models": [{name, modified_at, size, digest}, ...]}
    POST /api/generate   {model, prompt, context?, system?, stream, options?}

With stream=true the body is a run of concatenated JSON objects, each
{model, created_at, response, done, context?, ...}. The last one has
done=true and carries the continuation token in `context`. Objects are
not guaranteed to line up with network chunks, so the body is fed through
StreamDecoder.

Sending keep_alive=0 with an empty prompt unloads a model from server memory.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from role_game.models import Fragment, OllamaModel
from role_game.pipeline.stream import decode_stream

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_NUM_CTX = 4096


class OllamaClient:
    """Async HTTP client for an Ollama server.

    Args:
        base_url:  Server URL, e.g. "http://localhost:11434".
        timeout:   Per-request HTTP timeout in seconds. Whole-generation
                   deadlines are the caller's job.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _generate_body(
        self,
        model: str,
        prompt: str,
        context: list[int] | None,
        system: str | None,
        stream: bool,
        options: dict[str, Any] | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": stream,
            "options": {"num_ctx": DEFAULT_NUM_CTX, **(options or {})},
        }
        if context:
            body["context"] = context
        if system:
            body["system"] = system
        return body

    async def list_models(self) -> list[OllamaModel]:
        url = f"{self._base_url}/api/tags"
        try:
            async with self._client() as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise _wrap(e, self._base_url, self._timeout) from e

        data = resp.json()
        return [OllamaModel.model_validate(m) for m in data.get("models", [])]

    async def generate(
        self,
        model: str,
        prompt: str,
        context: list[int] | None = None,
        system: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> Fragment:
        """Non-streaming generation; returns the single final fragment."""
        url = f"{self._base_url}/api/generate"
        body = self._generate_body(model, prompt, context, system, False, options)
        logger.debug("generate model=%s prompt_len=%d", model, len(prompt))

        try:
            async with self._client() as client:
                resp = await client.post(url, json=body)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise _wrap(e, self._base_url, self._timeout) from e

        data = resp.json()
        if not isinstance(data, dict) or "response" not in data:
            raise LLMError("Unexpected response format from model server")
        return Fragment.from_wire(data)

    async def generate_stream(
        self,
        model: str,
        prompt: str,
        context: list[int] | None = None,
        system: str | None = None,
        options: dict[str, Any] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[Fragment]:
        """Stream a generation as fragments.

        The connection is closed on every exit path: exhaustion, error,
        cancellation or the consumer abandoning the iterator.
        """
        url = f"{self._base_url}/api/generate"
        body = self._generate_body(model, prompt, context, system, True, options)
        logger.debug(
            "generate_stream model=%s prompt_len=%d context_len=%d",
            model, len(prompt), len(context or []),
        )

        try:
            async with self._client() as client:
                async with client.stream("POST", url, json=body) as resp:
                    resp.raise_for_status()
                    async for obj in decode_stream(resp.aiter_text(), cancel):
                        yield Fragment.from_wire(obj)
        except httpx.HTTPError as e:
            raise _wrap(e, self._base_url, self._timeout) from e

    async def unload_model(self, model: str) -> bool:
        """Ask the server to drop a model from memory. Never raises."""
        url = f"{self._base_url}/api/generate"
        try:
            async with self._client() as client:
                resp = await client.post(
                    url, json={"model": model, "prompt": "", "keep_alive": 0},
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to unload model %s: %s", model, e)
            return False
        logger.info("Unloaded model %s", model)
        return True


def _wrap(e: httpx.HTTPError, base_url: str, timeout: float) -> LLMError:
    if isinstance(e, httpx.ConnectError):
        return LLMError(f"Cannot connect to model server at {base_url}")
    if isinstance(e, httpx.TimeoutException):
        return LLMTimeoutError(f"Model server timed out after {timeout}s")
    if isinstance(e, httpx.HTTPStatusError):
        return LLMError(f"Model server returned HTTP {e.response.status_code}")
    return LLMError(f"Model server request failed: {e}")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the model server cannot be reached or returns an error."""


class LLMTimeoutError(LLMError):
    """Raised when the model server does not answer in time."""
