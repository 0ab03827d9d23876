from __future__ import annotations

import re
from typing import List

from .models import MemoryDraft

_BIRTHDAY = re.compile(r"(?:我的生日是|生日)(?:在|是)?(\d+月\d+日?)")
_LIKE = re.compile(r"(?:我喜欢|我爱)(.{2,10})(?:，|。|$)")
_DISLIKE = re.compile(r"(?:我讨厌|我不喜欢)(.{2,10})(?:，|。|$)")
_JOB = re.compile(r"我是(.{2,6})")
_JOB_WORDS = ("工程师", "设计师", "学生")


def extract_memories(user_message: str, ai_response: str = "") -> List[MemoryDraft]:
    """Rule-based extraction of durable user facts from one turn.

    Covers birthdays, likes, dislikes and occupation. `ai_response` is accepted
    for symmetry with model-based extractors and is currently unused.
    """
    drafts: List[MemoryDraft] = []

    match = _BIRTHDAY.search(user_message)
    if match:
        drafts.append(MemoryDraft(type="important_day", key="生日", value=match.group(1), importance=5))

    if "我喜欢" in user_message or "我爱" in user_message:
        match = _LIKE.search(user_message)
        if match:
            liked = match.group(1)
            drafts.append(
                MemoryDraft(type="preference", key="喜欢的" + liked[:2], value=liked.strip(), importance=3)
            )

    if "我讨厌" in user_message or "我不喜欢" in user_message:
        match = _DISLIKE.search(user_message)
        if match:
            disliked = match.group(1)
            drafts.append(
                MemoryDraft(type="preference", key="不喜欢的" + disliked[:2], value=disliked.strip(), importance=3)
            )

    if "我是" in user_message and any(word in user_message for word in _JOB_WORDS):
        match = _JOB.search(user_message)
        if match:
            drafts.append(
                MemoryDraft(type="personal_info", key="职业", value=match.group(1).strip(), importance=4)
            )

    return drafts


__all__ = ["extract_memories"]
