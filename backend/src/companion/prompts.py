from __future__ import annotations

from typing import Iterable, List, Optional

from src.llm_core import Message

from .emotion import EmotionResult
from .models import HistoryMessage


def _format_number(value: float) -> str:
    """Whole numbers without a fractional part, others at full precision."""
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def build_system_prompt(
    persona: str,
    emotion: EmotionResult,
    *,
    knowledge_context: str = "",
    user_profile: Optional[str] = None,
    include_suggestion: bool = True,
) -> str:
    """Persona template plus the optional profile, knowledge and emotion blocks."""
    prompt = persona
    if user_profile and user_profile.strip():
        prompt += f"\n\n{user_profile}"
    if knowledge_context:
        prompt += knowledge_context
    if emotion.emotion != "normal":
        prompt += f"\n\n当前用户情绪：{emotion.emotion}（强度：{_format_number(emotion.intensity)}）"
        if include_suggestion:
            prompt += f"\n\n回应建议：{emotion.suggested_response}"
    return prompt


def compose_messages(
    persona: str,
    emotion: EmotionResult,
    *,
    message: str,
    history: Iterable[HistoryMessage] = (),
    knowledge_context: str = "",
    user_profile: Optional[str] = None,
    include_suggestion: bool = True,
) -> List[Message]:
    """System prompt, then the full prior history in order, then the new user message.

    History is forwarded as-is; no windowing is applied here.
    """
    system_content = build_system_prompt(
        persona,
        emotion,
        knowledge_context=knowledge_context,
        user_profile=user_profile,
        include_suggestion=include_suggestion,
    )
    messages: List[Message] = [Message(role="system", content=system_content)]
    messages.extend(Message(role=h.role, content=h.content) for h in history)
    messages.append(Message(role="user", content=message))
    return messages


__all__ = ["build_system_prompt", "compose_messages"]
