"""Parsing of the provider's newline-delimited `data: ` stream frames."""

from __future__ import annotations

import json
import logging

from .base import StreamChunk

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def parse_stream_line(line: str) -> StreamChunk | None:
    """Parse one line of a chat-completion stream.

    Returns a `done` chunk for the terminating frame, a `text_delta` chunk for
    non-empty content, a `reasoning` chunk for thinking output, and None for
    anything that carries nothing to deliver (blank lines, comments,
    keep-alives, frames without content, malformed JSON).
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX.strip()):
        return None
    data = line[len("data:"):].strip()
    if data == DONE_SENTINEL:
        return StreamChunk(type="done")
    try:
        parsed = json.loads(data)
    except ValueError:
        logger.warning("Skipping malformed stream frame: %s", data[:100])
        return None

    choices = parsed.get("choices") if isinstance(parsed, dict) else None
    if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta") or {}
    if not isinstance(delta, dict):
        return None

    content = delta.get("content")
    if isinstance(content, str) and content:
        return StreamChunk(type="text_delta", content=content)
    reasoning = delta.get("reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        return StreamChunk(type="reasoning", content=reasoning)
    return None


__all__ = ["DATA_PREFIX", "DONE_SENTINEL", "parse_stream_line"]
