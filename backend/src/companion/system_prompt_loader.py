"""Utilities for loading the companion persona prompt from disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import DEFAULT_SYSTEM_PROMPT_PATH

logger = logging.getLogger(__name__)

FALLBACK_SYSTEM_PROMPT = (
    '你是一个温暖、善解、富有同理心的情绪陪伴数字人，名为"小星"。'
    "请像朋友一样自然对话，先倾听和共情，再温柔回应，不要说教。"
)

_cached_prompt: Optional[str] = None


def _read_file(path: Path) -> str:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("System prompt file %s not found, using built-in persona", path)
        return ""
    except OSError as exc:
        logger.warning("Could not read system prompt file %s: %s", path, exc)
        return ""
    return text.strip()


def get_default_system_prompt() -> str:
    """Return the persona prompt text, cached after first read.

    Falls back to a short built-in persona when the file is missing or unreadable.
    """
    global _cached_prompt
    if _cached_prompt is None:
        _cached_prompt = _read_file(DEFAULT_SYSTEM_PROMPT_PATH) or FALLBACK_SYSTEM_PROMPT
    return _cached_prompt
