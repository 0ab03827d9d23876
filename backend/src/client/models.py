"""Client-side records persisted in the local state files."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

MemoryType = Literal[
    "preference",
    "important_day",
    "personal_info",
    "habit",
    "goal",
    "relationship",
    "health",
    "concern",
    "achievement",
]

MEMORY_TYPES: List[str] = [
    "preference",
    "important_day",
    "personal_info",
    "habit",
    "goal",
    "relationship",
    "health",
    "concern",
    "achievement",
]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ChatMessage(BaseModel):
    """One entry of the client's conversation log."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: int = Field(default_factory=now_ms)
    emotion: Optional[str] = None
    sources: Optional[List[Dict[str, Any]]] = None


class EmotionRecord(BaseModel):
    emotion: str = "normal"
    intensity: float = 0.0
    timestamp: int = Field(default_factory=now_ms)


class Memory(BaseModel):
    """A long-lived fact about the user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: MemoryType
    key: str
    value: str
    importance: int = Field(ge=1, le=5)
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")
    last_mentioned: int = Field(alias="lastMentioned")
    mention_count: int = Field(1, alias="mentionCount")


class MemoryDraft(BaseModel):
    """A memory before it is stored (no id or bookkeeping timestamps)."""

    type: MemoryType
    key: str
    value: str
    importance: int = Field(ge=1, le=5)


class ApiKeys(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    modelscope_api_key: str = Field("", alias="modelscopeApiKey")
    xingyun_app_id: str = Field("", alias="xingyunAppId")
    xingyun_app_secret: str = Field("", alias="xingyunAppSecret")


__all__ = [
    "ApiKeys",
    "ChatMessage",
    "EmotionRecord",
    "MEMORY_TYPES",
    "Memory",
    "MemoryDraft",
    "MemoryType",
    "now_ms",
]
