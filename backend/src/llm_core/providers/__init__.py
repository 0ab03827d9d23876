"""LLM providers: pluggable backends for the model gateway."""

from .base import LLMProvider, StreamChunk
from .modelscope_provider import ModelScopeProvider
from .stream_parser import parse_stream_line

__all__ = [
    "LLMProvider",
    "StreamChunk",
    "ModelScopeProvider",
    "parse_stream_line",
]
