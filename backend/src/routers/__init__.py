"""HTTP routers for the companion backend."""

from .chat import router as chat_router
from .diary import router as diary_router
from .emotion import router as emotion_router
from .health import router as health_router

__all__ = ["chat_router", "diary_router", "emotion_router", "health_router"]
