"""Companion service configuration: paths and defaults."""

from __future__ import annotations

from pathlib import Path

from main_config import (
    CLIENT_STATE_DIR as _CLIENT_STATE_DIR,
    DEFAULT_SYSTEM_PROMPT_PATH as _DEFAULT_SYSTEM_PROMPT_PATH,
    KNOWLEDGE_DIR as _KNOWLEDGE_DIR,
)

# Path objects for use in this package (main_config uses os.path strings)
KNOWLEDGE_DIR = Path(_KNOWLEDGE_DIR)
CLIENT_STATE_DIR = Path(_CLIENT_STATE_DIR)
DEFAULT_SYSTEM_PROMPT_PATH = Path(_DEFAULT_SYSTEM_PROMPT_PATH)

SERVICE_NAME = "emotion-companion"

CHAT_TEMPERATURE = 0.8
CHAT_MAX_TOKENS = 1000
