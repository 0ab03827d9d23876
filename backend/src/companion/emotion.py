"""Keyword/emoji based emotion tagging for a single user message."""

from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

EmotionName = Literal["happy", "sad", "angry", "anxious", "fear", "surprised", "disgust", "normal"]

# Declaration order breaks ties: the first category to reach the top count wins.
EMOTION_KEYWORDS: Dict[str, List[str]] = {
    "happy": ["开心", "高兴", "快乐", "幸福", "哈哈", "😊", "😄", "😁"],
    "sad": ["难过", "伤心", "悲伤", "痛苦", "😢", "😭", "😞"],
    "angry": ["生气", "愤怒", "火大", "恼火", "😡", "😠"],
    "anxious": ["焦虑", "担心", "紧张", "不安", "😰", "😨"],
    "fear": ["害怕", "恐惧", "恐慌", "😨", "😱"],
    "surprised": ["惊讶", "震惊", "吃惊", "😮"],
    "disgust": ["恶心", "厌恶", "🤮"],
}

EMOTION_CATEGORIES: List[str] = list(EMOTION_KEYWORDS.keys())

# (confidence, suggested response) per category.
_RESPONSE_TABLE: Dict[str, tuple[float, str]] = {
    "happy": (0.8, "看你心情不错呀！有什么开心的事分享吗？😊"),
    "sad": (0.7, "看你不太开心，愿意和我说说吗？我在这里陪着你。"),
    "angry": (0.9, "我理解你现在可能很生气，可以和我发泄一下，我在这里倾听。"),
    "anxious": (0.7, "别担心，深呼吸，我在这里陪你。我们一起面对。"),
    "fear": (0.8, "别怕，我在这里保护你。一起加油！💪"),
    "surprised": (0.6, "发生了什么？告诉我，我在听。"),
    "disgust": (0.7, "听起来这件事让你很不舒服，愿意和我说说发生了什么吗？"),
    "normal": (0.9, "嗨！今天想聊点什么？😊"),
}


class EmotionResult(BaseModel):
    """Emotion verdict for one message."""

    model_config = ConfigDict(populate_by_name=True)

    emotion: EmotionName
    intensity: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(gt=0.0, le=1.0)
    suggested_response: str = Field(alias="suggestedResponse")


def _count_matches(message: str, lowered: str, keywords: List[str]) -> int:
    count = 0
    for keyword in keywords:
        if keyword in message:
            count += 1
        elif keyword.isascii() and keyword.lower() in lowered:
            count += 1
    return count


def analyze_emotion(message: str | None) -> EmotionResult:
    """Score `message` against each category and return the strongest emotion.

    intensity = min(matches / 3, 1.0) for the winning category; a message that
    matches nothing is `normal` with intensity 0.
    """
    text = message if isinstance(message, str) else ""
    lowered = text.lower()

    max_score = 0
    detected = "normal"
    for emotion, keywords in EMOTION_KEYWORDS.items():
        score = _count_matches(text, lowered, keywords)
        if score > max_score:
            max_score = score
            detected = emotion

    intensity = min(max_score / 3, 1.0) if detected != "normal" else 0.0
    confidence, suggestion = _RESPONSE_TABLE[detected]
    return EmotionResult(
        emotion=detected,
        intensity=intensity,
        confidence=confidence,
        suggested_response=suggestion,
    )


__all__ = ["EMOTION_CATEGORIES", "EMOTION_KEYWORDS", "EmotionName", "EmotionResult", "analyze_emotion"]
