"""One conversation turn from the client's side: log, stream, remember, speak."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .avatar import AvatarController
from .chat_client import ChatClient
from .memory_extraction import extract_memories
from .models import ChatMessage, EmotionRecord, now_ms
from .stores import ChatStore, EmotionStore, MemoryStore

logger = logging.getLogger(__name__)

APOLOGY_TEXT = "抱歉，我遇到了一些问题。请稍后再试。"
GREETING_TEXT = "你好呀，我是小星。今天过得怎么样？有什么想和我聊聊的吗？"


def _message_id(role: str) -> str:
    return f"{role}_{now_ms()}"


class CompanionSession:
    """Wires the stores, the chat client and the avatar for each user message."""

    def __init__(
        self,
        client: ChatClient,
        chat_store: ChatStore,
        emotion_store: EmotionStore,
        memory_store: MemoryStore,
        avatar: Optional[AvatarController] = None,
    ) -> None:
        self.client = client
        self.chat_store = chat_store
        self.emotion_store = emotion_store
        self.memory_store = memory_store
        self.avatar = avatar
        self.streaming_text = ""
        self.is_loading = False

    async def handle_send_message(self, text: str) -> Optional[ChatMessage]:
        """Run one turn and return the assistant message that was logged, if any."""
        text = text.strip()
        if not text or self.is_loading:
            return None

        history = self.chat_store.conversation_history()
        self.chat_store.add(ChatMessage(id=_message_id("user"), role="user", content=text))
        self.is_loading = True
        self.streaming_text = ""
        if self.avatar is not None:
            self.avatar.set_listen()

        outcome: Dict[str, Any] = {}

        def on_chunk(chunk: str) -> None:
            self.streaming_text += chunk

        def on_complete(sources: List[Dict[str, Any]], emotion: Optional[Dict[str, Any]]) -> None:
            outcome["sources"] = sources
            outcome["emotion"] = emotion

        def on_error(error: str) -> None:
            outcome["error"] = error

        try:
            full_text = await self.client.send_message_stream(
                text,
                on_chunk,
                on_complete,
                on_error,
                history=history,
                user_profile=self.memory_store.build_user_profile() or None,
            )
        finally:
            self.is_loading = False
            self.streaming_text = ""

        if "error" in outcome:
            logger.error("Chat turn failed: %s", outcome["error"])
            reply = ChatMessage(id=_message_id("assistant"), role="assistant", content=APOLOGY_TEXT)
            self.chat_store.add(reply)
            if self.avatar is not None:
                self.avatar.set_idle()
            return reply

        emotion = outcome.get("emotion") or {}
        emotion_name = emotion.get("current") or "normal"
        if emotion:
            record = EmotionRecord(emotion=emotion_name, intensity=float(emotion.get("intensity") or 0))
            self.emotion_store.set_current(record)
            self.emotion_store.add_to_history(record)

        reply = ChatMessage(
            id=_message_id("assistant"),
            role="assistant",
            content=full_text,
            emotion=emotion_name if emotion else None,
            sources=outcome.get("sources") or None,
        )
        self.chat_store.add(reply)

        for draft in extract_memories(text, full_text):
            self.memory_store.add(draft)

        if self.avatar is not None and full_text:
            await self.avatar.speak_full_text(full_text, emotion_name)
        return reply

    def new_chat(self) -> None:
        self.chat_store.clear()
        if self.avatar is not None and self.avatar.is_initialized:
            self.avatar.speak_with_action(GREETING_TEXT, "Welcome")


__all__ = ["APOLOGY_TEXT", "CompanionSession", "GREETING_TEXT"]
