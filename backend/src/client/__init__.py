"""Companion client: chat stream consumer, local state, avatar control."""

from .avatar import AvatarConfig, AvatarController, AvatarInitError, AvatarSDK, SDKLoader
from .chat_client import ChatClient, parse_event_line
from .memory_extraction import extract_memories
from .models import ApiKeys, ChatMessage, EmotionRecord, Memory, MemoryDraft
from .session import CompanionSession
from .stores import ChatStore, EmotionStore, KeyStore, MemoryStore

__all__ = [
    "extract_memories",
    "parse_event_line",
    "ApiKeys",
    "AvatarConfig",
    "AvatarController",
    "AvatarInitError",
    "AvatarSDK",
    "ChatClient",
    "ChatMessage",
    "ChatStore",
    "CompanionSession",
    "EmotionRecord",
    "EmotionStore",
    "KeyStore",
    "Memory",
    "MemoryDraft",
    "MemoryStore",
    "SDKLoader",
]
