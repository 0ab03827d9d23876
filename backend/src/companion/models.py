"""Data models for chat requests, results, and stream events."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .emotion import EmotionResult
from .knowledge import SourceInfo


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class HistoryMessage(BaseModel):
    """One prior turn forwarded by the client."""

    role: str = Field(..., description="Chat role of the turn; must be one the model accepts")
    content: str = ""


class ChatRequest(BaseModel):
    """Request body for POST /api/chat/send and /api/chat/stream."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="User message")
    conversation_history: list[HistoryMessage] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Prior turns, oldest first",
    )
    user_profile: str | None = Field(
        None,
        alias="userProfile",
        description="Optional user profile summary built from client memories",
    )
    api_key: str | None = Field(
        None,
        alias="apiKey",
        description="Optional model credential overriding the server default",
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class EmotionSummary(BaseModel):
    """Emotion verdict as sent on the wire."""

    current: str
    intensity: float
    confidence: float

    @classmethod
    def from_result(cls, result: EmotionResult) -> EmotionSummary:
        return cls(current=result.emotion, intensity=result.intensity, confidence=result.confidence)


class ChatResult(BaseModel):
    """Outcome of a single-shot chat turn."""

    response: str
    emotion: EmotionSummary | None = None
    sources: list[SourceInfo] = Field(default_factory=list)
    is_emergency: bool = False

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": True}
        if self.is_emergency:
            out["isEmergency"] = True
        out["response"] = self.response
        if self.emotion is not None:
            out["emotion"] = self.emotion.model_dump()
        if not self.is_emergency:
            out["sources"] = [s.to_wire() for s in self.sources]
        return out


class StreamEvent(BaseModel):
    """One event of a streamed turn: content deltas, then a single end event."""

    type: Literal["start", "content", "end", "error"]
    data: str | None = None
    sources: list[SourceInfo] | None = None
    emotion: EmotionSummary | None = None
    is_emergency: bool = False

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.type in ("content", "error"):
            out["data"] = self.data or ""
        elif self.type == "end":
            out["sources"] = [s.to_wire() for s in self.sources or []]
            out["emotion"] = self.emotion.model_dump() if self.emotion is not None else None
            if self.is_emergency:
                out["isEmergency"] = True
        return out


__all__ = [
    "ChatRequest",
    "ChatResult",
    "EmotionSummary",
    "HistoryMessage",
    "StreamEvent",
]
