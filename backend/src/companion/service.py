"""Chat orchestrator: emotion + knowledge augmented calls to the model gateway."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import List, Optional

from src.llm_core import LLMProvider, Message, chat, chat_stream

from .config import CHAT_MAX_TOKENS, CHAT_TEMPERATURE
from .emergency import SAFETY_EMOTION, SAFETY_RESPONSE, check_emergency
from .emotion import EmotionResult, analyze_emotion
from .knowledge import KnowledgeBase, SourceInfo, get_knowledge_base
from .models import ChatRequest, ChatResult, EmotionSummary, StreamEvent
from .prompts import compose_messages
from .system_prompt_loader import get_default_system_prompt

logger = logging.getLogger(__name__)


@dataclass
class ChatOptions:
    """Generation options for companion turns."""

    temperature: float = CHAT_TEMPERATURE
    max_tokens: int = CHAT_MAX_TOKENS
    enable_thinking: bool = True
    llm_provider: LLMProvider | None = None


@dataclass
class _PreparedTurn:
    emotion: EmotionResult
    sources: List[SourceInfo]
    messages: List[Message] = field(default_factory=list)


class ChatService:
    """Runs one conversation turn.

    Holds no per-request state: the knowledge base is an immutable snapshot and
    citations travel with the result (or the stream's end event).
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase | None = None,
        persona: str | None = None,
        options: ChatOptions | None = None,
    ) -> None:
        self.knowledge_base = knowledge_base if knowledge_base is not None else get_knowledge_base()
        self.persona = persona or get_default_system_prompt()
        self.options = options or ChatOptions()

    # ------------------------------------------------------------------
    # Emergency short-circuit
    # ------------------------------------------------------------------

    @staticmethod
    def check_emergency(message: str) -> bool:
        return check_emergency(message)

    @staticmethod
    def emergency_result() -> ChatResult:
        return ChatResult(
            response=SAFETY_RESPONSE,
            emotion=EmotionSummary(**SAFETY_EMOTION),
            is_emergency=True,
        )

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    def _prepare(self, request: ChatRequest, *, include_suggestion: bool) -> _PreparedTurn:
        emotion = analyze_emotion(request.message)
        logger.info("Emotion detected: %s (intensity %.2f)", emotion.emotion, emotion.intensity)

        context = self.knowledge_base.build_context(request.message)
        sources = self.knowledge_base.get_sources(request.message)
        logger.info("Knowledge sources: %s", [s.id for s in sources])

        messages = compose_messages(
            self.persona,
            emotion,
            message=request.message,
            history=request.conversation_history,
            knowledge_context=context,
            user_profile=request.user_profile,
            include_suggestion=include_suggestion,
        )
        return _PreparedTurn(emotion=emotion, sources=sources, messages=messages)

    async def process_chat(self, request: ChatRequest) -> ChatResult:
        """Single-shot turn. Gateway errors propagate to the caller."""
        if self.check_emergency(request.message):
            logger.warning("Crisis keyword detected, returning safety response")
            return self.emergency_result()

        turn = self._prepare(request, include_suggestion=True)
        response = await chat(
            turn.messages,
            temperature=self.options.temperature,
            max_tokens=self.options.max_tokens,
            api_key=request.api_key,
            enable_thinking=self.options.enable_thinking,
            provider=self.options.llm_provider,
        )
        return ChatResult(
            response=response,
            emotion=EmotionSummary.from_result(turn.emotion),
            sources=turn.sources,
        )

    async def process_chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """Streamed turn: content events in provider order, then exactly one end event.

        Gateway errors propagate out of the iterator; no end event follows them.
        """
        if self.check_emergency(request.message):
            logger.warning("Crisis keyword detected, streaming safety response")
            yield StreamEvent(type="content", data=SAFETY_RESPONSE)
            yield StreamEvent(
                type="end",
                sources=[],
                emotion=EmotionSummary(**SAFETY_EMOTION),
                is_emergency=True,
            )
            return

        turn = self._prepare(request, include_suggestion=False)
        logger.info("Messages prepared (%d), starting stream", len(turn.messages))

        count = 0
        async for delta in chat_stream(
            turn.messages,
            temperature=self.options.temperature,
            max_tokens=self.options.max_tokens,
            api_key=request.api_key,
            enable_thinking=self.options.enable_thinking,
            provider=self.options.llm_provider,
        ):
            count += 1
            yield StreamEvent(type="content", data=delta)
        logger.info("Total chunks yielded: %d", count)

        yield StreamEvent(
            type="end",
            sources=turn.sources,
            emotion=EmotionSummary.from_result(turn.emotion),
        )


_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Process-wide chat service (loads the knowledge base on first use)."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


def set_chat_service(service: ChatService | None) -> None:
    global _chat_service
    _chat_service = service


__all__ = ["ChatOptions", "ChatService", "get_chat_service", "set_chat_service"]
