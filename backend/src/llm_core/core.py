from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from .config import DEFAULT_LLM_CORE_CONFIG, LLMCoreConfig
from .models import Message
from .providers import LLMProvider, ModelScopeProvider

_default_provider: LLMProvider | None = None


def get_default_provider(config: LLMCoreConfig | None = None) -> LLMProvider:
    """Return the process-wide provider, creating the ModelScope one on first use."""
    global _default_provider
    if _default_provider is None:
        _default_provider = ModelScopeProvider(config or DEFAULT_LLM_CORE_CONFIG)
    return _default_provider


def set_default_provider(provider: LLMProvider | None) -> None:
    """Replace the process-wide provider (None resets to lazy ModelScope creation)."""
    global _default_provider
    _default_provider = provider


async def chat(
    messages: list[Message],
    *,
    temperature: float = 0.8,
    max_tokens: int = 2000,
    api_key: str | None = None,
    enable_thinking: bool = True,
    provider: LLMProvider | None = None,
    **kwargs: Any,
) -> str:
    """Single-shot chat; returns the complete assistant reply."""
    p = provider or get_default_provider()
    return await p.chat(
        messages,
        api_key=api_key,
        temperature=temperature,
        max_tokens=max_tokens,
        enable_thinking=enable_thinking,
        **kwargs,
    )


async def chat_stream(
    messages: list[Message],
    *,
    temperature: float = 0.8,
    max_tokens: int = 2000,
    api_key: str | None = None,
    enable_thinking: bool = True,
    provider: LLMProvider | None = None,
    **kwargs: Any,
) -> AsyncIterator[str]:
    """Streaming chat; yields content increments in provider order.

    Reasoning output is dropped here so it never reaches clients.
    """
    p = provider or get_default_provider()
    async for chunk in p.stream_chat(
        messages,
        api_key=api_key,
        temperature=temperature,
        max_tokens=max_tokens,
        enable_thinking=enable_thinking,
        **kwargs,
    ):
        if chunk.type == "done":
            return
        if chunk.type == "text_delta" and chunk.content:
            yield chunk.content


async def generate_embedding(text: str, *, provider: LLMProvider | None = None) -> list[float]:
    """Embedding vector for `text` from the configured embedding model."""
    p = provider or get_default_provider()
    return await p.embed(text)
