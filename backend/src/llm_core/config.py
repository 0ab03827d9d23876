from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_BASE_URL = "https://api-inference.modelscope.cn/v1"
DEFAULT_CHAT_MODEL = "deepseek-ai/DeepSeek-V3.2"
DEFAULT_EMBEDDING_MODEL = "Qwen/Qwen3-Embedding-8B"


@dataclass
class LLMCoreConfig:
    """Configuration for the hosted model gateway.

    Values default to the MODELSCOPE_* environment variables (a `.env` file is
    honoured) so the process-wide credential can be set without code changes.
    """

    base_url: str = field(default_factory=lambda: os.getenv("MODELSCOPE_BASE_URL") or DEFAULT_BASE_URL)
    api_key: str = field(default_factory=lambda: os.getenv("MODELSCOPE_API_KEY") or "")
    model: str = field(default_factory=lambda: os.getenv("MODELSCOPE_MODEL") or DEFAULT_CHAT_MODEL)
    embedding_model: str = field(
        default_factory=lambda: os.getenv("MODELSCOPE_EMBEDDING_MODEL") or DEFAULT_EMBEDDING_MODEL
    )
    temperature: float = 0.8
    max_tokens: int = 2000
    enable_thinking: bool = True


DEFAULT_LLM_CORE_CONFIG = LLMCoreConfig()
