"""ModelScope (OpenAI-compatible) LLM provider implementation."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from openai import APIError, AsyncOpenAI

from ..config import LLMCoreConfig
from ..errors import ModelServiceError, extract_provider_message
from ..models import Message
from .base import LLMProvider, StreamChunk
from .stream_parser import parse_stream_line

logger = logging.getLogger(__name__)


class ModelScopeProvider(LLMProvider):
    """Provider for the ModelScope inference API.

    Single-shot chat and embeddings go through the `openai` SDK pointed at the
    ModelScope base URL. Streaming reads the raw `data: ` frames over httpx so
    that a malformed frame can be skipped instead of aborting the stream.
    """

    def __init__(
        self,
        config: LLMCoreConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or LLMCoreConfig()
        self._client: AsyncOpenAI | None = None
        self._http_client = http_client
        logger.info(
            "ModelScope provider ready (key configured: %s, chat model: %s, embedding model: %s)",
            bool(self.config.api_key),
            self.config.model,
            self.config.embedding_model,
        )

    def _get_client(self, api_key: str | None = None) -> AsyncOpenAI:
        # One attempt per call, no client-side deadline.
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                max_retries=0,
                timeout=None,
                http_client=self._http_client,
            )
        if api_key and api_key != self.config.api_key:
            return self._client.with_options(api_key=api_key, max_retries=0, timeout=None)
        return self._client

    @staticmethod
    def _to_chat_messages(messages: list[Message]) -> list[dict[str, Any]]:
        return [m.to_chat_dict() for m in messages]

    def _request_body(
        self,
        messages: list[Message],
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": self._to_chat_messages(messages),
            "temperature": temperature if temperature is not None else self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

    async def chat(
        self,
        messages: list[Message],
        *,
        api_key: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        enable_thinking: bool = True,
        **kwargs: Any,
    ) -> str:
        """Non-streaming chat using the Chat Completions endpoint."""
        params = self._request_body(messages, temperature, max_tokens)
        if enable_thinking:
            params["extra_body"] = {"enable_thinking": True}
        params.update(kwargs)

        try:
            resp = await self._get_client(api_key).chat.completions.create(**params)
        except APIError as exc:
            logger.error("ModelScope API error: %s", exc.body or exc.message)
            raise ModelServiceError(
                extract_provider_message(exc.body),
                status_code=getattr(exc, "status_code", None),
            ) from exc

        if not resp.choices:
            logger.error("ModelScope returned no choices")
            raise ModelServiceError()
        return resp.choices[0].message.content or ""

    async def stream_chat(
        self,
        messages: list[Message],
        *,
        api_key: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        enable_thinking: bool = True,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        """Streaming chat; yields text deltas, reasoning chunks, and a final done chunk."""
        body = self._request_body(messages, temperature, max_tokens)
        body["stream"] = True
        if enable_thinking:
            body["enable_thinking"] = True
        body.update(kwargs)
        headers = {
            "Authorization": f"Bearer {api_key or self.config.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"

        logger.info("Starting stream request with model %s (%d messages)", self.config.model, len(messages))
        client = self._http_client or httpx.AsyncClient(timeout=None)
        yielded = 0
        try:
            async with client.stream("POST", url, json=body, headers=headers) as resp:
                if resp.status_code >= 400:
                    raw = await resp.aread()
                    logger.error("ModelScope stream error %d: %s", resp.status_code, raw[:300])
                    raise ModelServiceError(_message_from_bytes(raw), status_code=resp.status_code)
                async for line in resp.aiter_lines():
                    chunk = parse_stream_line(line)
                    if chunk is None:
                        continue
                    if chunk.type == "done":
                        logger.info("Stream received [DONE] after %d content chunks", yielded)
                        break
                    if chunk.type == "reasoning":
                        logger.debug("Reasoning content received (%d chars)", len(chunk.content))
                    else:
                        yielded += 1
                    yield chunk
        except httpx.HTTPError as exc:
            logger.error("ModelScope stream transport error: %s", exc)
            raise ModelServiceError() from exc
        finally:
            if self._http_client is None:
                await client.aclose()

        yield StreamChunk(type="done")

    async def embed(self, text: str) -> list[float]:
        """Embed text with the configured embedding model (process-wide credential)."""
        try:
            resp = await self._get_client().embeddings.create(
                model=self.config.embedding_model,
                input=text,
                encoding_format="float",
            )
        except APIError as exc:
            logger.error("ModelScope embedding error: %s", exc.body or exc.message)
            raise ModelServiceError(extract_provider_message(exc.body)) from exc
        if not resp.data:
            raise ModelServiceError()
        return list(resp.data[0].embedding)


def _message_from_bytes(raw: bytes) -> str | None:
    try:
        return extract_provider_message(json.loads(raw))
    except ValueError:
        return None
