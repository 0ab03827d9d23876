"""Abstract LLM provider interface for the model gateway."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from ..models import Message


@dataclass
class StreamChunk:
    """One chunk from an LLM stream."""

    type: str  # "text_delta" | "reasoning" | "done"
    content: str = ""


class LLMProvider(ABC):
    """
    Abstract LLM provider. The gateway functions in `core` only depend on this
    interface, so tests and alternative backends can plug in here.
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        *,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Non-streaming chat. Returns the assistant content."""
        ...

    @abstractmethod
    def stream_chat(
        self,
        messages: list[Message],
        *,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        """Stream chat; yields text deltas (and reasoning chunks) then a done chunk."""
        ...

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the given text."""
        ...
