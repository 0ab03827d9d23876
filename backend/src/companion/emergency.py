"""Crisis keyword detection and the canned safety reply."""

from __future__ import annotations

from typing import Tuple

CRISIS_KEYWORDS: Tuple[str, ...] = (
    "自杀",
    "想死",
    "不想活了",
    "结束生命",
    "自残",
    "伤害自己",
)

SAFETY_RESPONSE = (
    "我非常关心你的安全。如果你正在经历困难时期，请记得你并不孤单，有很多人愿意帮助你。"
    "请考虑联系专业心理咨询热线或寻求信任的人的帮助。我在这里也会一直陪伴你。"
)

SAFETY_EMOTION = {"current": "sad", "intensity": 1, "confidence": 1}


def check_emergency(message: str | None) -> bool:
    """True if the message contains any crisis keyword."""
    if not isinstance(message, str) or not message:
        return False
    return any(keyword in message for keyword in CRISIS_KEYWORDS)


__all__ = ["CRISIS_KEYWORDS", "SAFETY_EMOTION", "SAFETY_RESPONSE", "check_emergency"]
