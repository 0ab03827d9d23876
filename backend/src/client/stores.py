"""Persisted client state: chat log, emotion history, user memories, API keys.

Each store loads its file once on construction and writes it back after every
mutation. Files use the layout `{"state": {...}, "version": 1}` under a named
key, one JSON file per key in the client state directory.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.companion.config import CLIENT_STATE_DIR

from .models import (
    MEMORY_TYPES,
    ApiKeys,
    ChatMessage,
    EmotionRecord,
    Memory,
    MemoryDraft,
    MemoryType,
    now_ms,
)

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class JsonStateFile:
    """One named slot of persisted client state."""

    def __init__(self, state_dir: Path | str, name: str, version: int = 1) -> None:
        self.path = Path(state_dir) / f"{name}.json"
        self.name = name
        self.version = version

    def load(self) -> Dict[str, Any]:
        """Return the stored state, or {} when missing or unreadable."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        state = raw.get("state") if isinstance(raw, dict) else None
        return state if isinstance(state, dict) else {}

    def save(self, state: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"state": state, "version": self.version}
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2, default=str)


def _validate_list(model: Any, raw: Any, name: str) -> List[Any]:
    out: List[Any] = []
    for entry in raw if isinstance(raw, list) else []:
        try:
            out.append(model.model_validate(entry))
        except ValidationError as exc:
            logger.warning("Dropping invalid %s entry: %s", name, exc)
    return out


# ---------------------------------------------------------------------------
# Chat log
# ---------------------------------------------------------------------------


class ChatStore:
    """Append-only conversation log, capped at the most recent MAX_MESSAGES."""

    STORAGE_KEY = "emotion-companion-chat"
    MAX_MESSAGES = 100

    def __init__(self, state_dir: Path | str = CLIENT_STATE_DIR) -> None:
        self._file = JsonStateFile(state_dir, self.STORAGE_KEY)
        state = self._file.load()
        self._messages: List[ChatMessage] = _validate_list(ChatMessage, state.get("messages"), "message")

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def add(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self._messages = self._messages[-self.MAX_MESSAGES:]
        self._save()

    def clear(self) -> None:
        self._messages = []
        self._save()

    def conversation_history(self) -> List[Dict[str, str]]:
        """Role/content pairs in log order, as the chat endpoints expect."""
        return [{"role": m.role, "content": m.content} for m in self._messages]

    def _save(self) -> None:
        self._file.save(
            {
                "messages": [m.model_dump(exclude_none=True) for m in self._messages],
                "_savedAt": now_ms(),
            }
        )


# ---------------------------------------------------------------------------
# Emotion history
# ---------------------------------------------------------------------------


class EmotionStore:
    """Current emotion plus a newest-first history capped at the newest 30 records."""

    STORAGE_KEY = "emotion-storage"
    PERSISTED_HISTORY = 30

    def __init__(self, state_dir: Path | str = CLIENT_STATE_DIR) -> None:
        self._file = JsonStateFile(state_dir, self.STORAGE_KEY)
        state = self._file.load()
        self._history: List[EmotionRecord] = _validate_list(
            EmotionRecord, state.get("emotionHistory"), "emotion"
        )
        self.current = EmotionRecord()

    def set_current(self, record: EmotionRecord) -> None:
        self.current = record

    def add_to_history(self, record: EmotionRecord) -> None:
        self._history.insert(0, record)
        del self._history[self.PERSISTED_HISTORY:]
        self._save()

    def history(self, days: int = 7) -> List[EmotionRecord]:
        cutoff = now_ms() - days * DAY_MS
        return [r for r in self._history if r.timestamp >= cutoff]

    def stats(self, days: int = 7) -> Dict[str, Any]:
        """Totals, most common emotion, and average intensities over `days`."""
        records = self.history(days)
        counts = Counter(r.emotion for r in records)
        by_emotion: Dict[str, List[float]] = {}
        for r in records:
            by_emotion.setdefault(r.emotion, []).append(r.intensity)
        most_common = counts.most_common(1)
        return {
            "totalRecords": len(records),
            "mostCommon": {"emotion": most_common[0][0], "count": most_common[0][1]} if most_common else None,
            "avgIntensity": sum(r.intensity for r in records) / len(records) if records else 0.0,
            "emotionAvgIntensity": {e: sum(v) / len(v) for e, v in by_emotion.items()},
        }

    def _save(self) -> None:
        self._file.save({"emotionHistory": [r.model_dump() for r in self._history]})


# ---------------------------------------------------------------------------
# User memories
# ---------------------------------------------------------------------------

MEMORY_TYPE_LABELS: Dict[str, str] = {
    "preference": "偏好",
    "important_day": "重要日子",
    "personal_info": "个人信息",
    "habit": "习惯",
    "goal": "目标",
    "relationship": "人际关系",
    "health": "健康状况",
    "concern": "关注点",
    "achievement": "成就",
}


class MemoryStore:
    """Long-lived user facts, at most one per key, capped at MAX_MEMORIES."""

    STORAGE_KEY = "emotion-companion-memory"
    MAX_MEMORIES = 100

    def __init__(self, state_dir: Path | str = CLIENT_STATE_DIR) -> None:
        self._file = JsonStateFile(state_dir, self.STORAGE_KEY)
        state = self._file.load()
        self._memories: List[Memory] = _validate_list(Memory, state.get("memories"), "memory")

    def add(self, draft: MemoryDraft) -> Memory:
        """Store a memory, or refresh the existing one with the same key.

        Refreshing replaces the value, keeps the higher importance and bumps
        the mention count.
        """
        now = now_ms()
        for index, existing in enumerate(self._memories):
            if existing.key == draft.key:
                updated = existing.model_copy(
                    update={
                        "value": draft.value,
                        "importance": max(existing.importance, draft.importance),
                        "updated_at": now,
                        "last_mentioned": now,
                        "mention_count": existing.mention_count + 1,
                    }
                )
                self._memories[index] = updated
                self._save()
                return updated

        memory = Memory(
            id=f"mem_{now}_{uuid.uuid4().hex[:9]}",
            type=draft.type,
            key=draft.key,
            value=draft.value,
            importance=draft.importance,
            created_at=now,
            updated_at=now,
            last_mentioned=now,
            mention_count=1,
        )
        self._memories.append(memory)
        self._memories = self._memories[-self.MAX_MEMORIES:]
        self._save()
        return memory

    def update(self, memory_id: str, **updates: Any) -> Optional[Memory]:
        for index, existing in enumerate(self._memories):
            if existing.id == memory_id:
                updated = existing.model_copy(update={**updates, "updated_at": now_ms()})
                self._memories[index] = updated
                self._save()
                return updated
        return None

    def delete(self, memory_id: str) -> None:
        self._memories = [m for m in self._memories if m.id != memory_id]
        self._save()

    def mention(self, key: str) -> None:
        now = now_ms()
        self._memories = [
            m.model_copy(update={"last_mentioned": now, "mention_count": m.mention_count + 1})
            if m.key == key
            else m
            for m in self._memories
        ]
        self._save()

    def all(self) -> List[Memory]:
        return list(self._memories)

    def by_type(self, memory_type: MemoryType) -> List[Memory]:
        return [m for m in self._memories if m.type == memory_type]

    def search(self, keyword: str) -> List[Memory]:
        needle = keyword.lower()
        return [m for m in self._memories if needle in m.key.lower() or needle in m.value.lower()]

    def important(self) -> List[Memory]:
        return [m for m in self._memories if m.importance >= 4]

    def recent(self, days: int = 7) -> List[Memory]:
        cutoff = now_ms() - days * DAY_MS
        return [m for m in self._memories if m.last_mentioned >= cutoff]

    def build_user_profile(self) -> str:
        """Profile text for the system prompt: memories with importance >= 3, grouped by type."""
        lines: List[str] = []
        for memory_type in MEMORY_TYPES:
            items = [m for m in self._memories if m.type == memory_type and m.importance >= 3]
            if items:
                text = "; ".join(f"{m.key}: {m.value}" for m in items)
                lines.append(f"【{MEMORY_TYPE_LABELS[memory_type]}】{text}")
        return "用户画像：\n" + "\n".join(lines) if lines else ""

    def _save(self) -> None:
        self._file.save({"memories": [m.model_dump(by_alias=True) for m in self._memories]})


# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------


def default_api_keys() -> ApiKeys:
    """Built-in fallback credentials, taken from the environment."""
    return ApiKeys(
        modelscope_api_key=os.getenv("MODELSCOPE_API_KEY", ""),
        xingyun_app_id=os.getenv("XINGYUN_APP_ID", ""),
        xingyun_app_secret=os.getenv("XINGYUN_APP_SECRET", ""),
    )


class KeyStore:
    """User-entered credentials; falls back to the built-in defaults per field."""

    STORAGE_KEY = "api-keys-storage"

    def __init__(self, state_dir: Path | str = CLIENT_STATE_DIR, defaults: ApiKeys | None = None) -> None:
        self._file = JsonStateFile(state_dir, self.STORAGE_KEY)
        self._defaults = defaults or default_api_keys()
        state = self._file.load()
        self._keys: Optional[ApiKeys] = None
        if isinstance(state.get("keys"), dict):
            try:
                self._keys = ApiKeys.model_validate(state["keys"])
            except ValidationError as exc:
                logger.warning("Ignoring invalid stored keys: %s", exc)

    @property
    def is_configured(self) -> bool:
        return self._keys is not None

    @property
    def keys(self) -> Optional[ApiKeys]:
        return self._keys

    def set_keys(self, keys: ApiKeys) -> None:
        self._keys = keys
        self._save()

    def clear(self) -> None:
        self._keys = None
        self._save()

    def modelscope_key(self) -> str:
        return (self._keys and self._keys.modelscope_api_key) or self._defaults.modelscope_api_key

    def xingyun_app_id(self) -> str:
        return (self._keys and self._keys.xingyun_app_id) or self._defaults.xingyun_app_id

    def xingyun_app_secret(self) -> str:
        return (self._keys and self._keys.xingyun_app_secret) or self._defaults.xingyun_app_secret

    def _save(self) -> None:
        self._file.save(
            {
                "keys": self._keys.model_dump(by_alias=True) if self._keys else None,
                "isConfigured": self._keys is not None,
            }
        )


__all__ = [
    "ChatStore",
    "EmotionStore",
    "JsonStateFile",
    "KeyStore",
    "MemoryStore",
    "MEMORY_TYPE_LABELS",
    "default_api_keys",
]
