"""Emotion companion pipeline: classification, retrieval, prompting, orchestration."""

from .emergency import check_emergency
from .emotion import EmotionResult, analyze_emotion
from .knowledge import KnowledgeBase, KnowledgeItem, RetrievalResult, SourceInfo, get_knowledge_base
from .models import ChatRequest, ChatResult, EmotionSummary, HistoryMessage, StreamEvent
from .service import ChatOptions, ChatService, get_chat_service, set_chat_service

__all__ = [
    "analyze_emotion",
    "check_emergency",
    "get_chat_service",
    "get_knowledge_base",
    "set_chat_service",
    "ChatOptions",
    "ChatRequest",
    "ChatResult",
    "ChatService",
    "EmotionResult",
    "EmotionSummary",
    "HistoryMessage",
    "KnowledgeBase",
    "KnowledgeItem",
    "RetrievalResult",
    "SourceInfo",
    "StreamEvent",
]
