"""Model gateway: hosted chat-completion and embedding access shared across the backend."""

from .config import DEFAULT_LLM_CORE_CONFIG, LLMCoreConfig
from .core import chat, chat_stream, generate_embedding, get_default_provider, set_default_provider
from .errors import GENERIC_FAILURE_MESSAGE, ModelServiceError
from .models import Message
from .providers import LLMProvider, ModelScopeProvider, StreamChunk

__all__ = [
    "Message",
    "LLMCoreConfig",
    "DEFAULT_LLM_CORE_CONFIG",
    "GENERIC_FAILURE_MESSAGE",
    "ModelServiceError",
    "LLMProvider",
    "ModelScopeProvider",
    "StreamChunk",
    "chat",
    "chat_stream",
    "generate_embedding",
    "get_default_provider",
    "set_default_provider",
]
