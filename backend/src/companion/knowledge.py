"""Small local knowledge base: keyword retrieval over curated empathy items."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import KNOWLEDGE_DIR

logger = logging.getLogger(__name__)

KNOWLEDGE_FILES: Tuple[str, ...] = ("emotion.json", "empathy.json", "comfort.json", "motivation.json")

KB_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "emotion": "情绪陪伴",
        "empathy": "共情回应",
        "comfort": "安慰支持",
        "motivation": "激励鼓励",
    }
)

# Retrieval-side emotion vocabulary; deliberately separate from the classifier's table.
RETRIEVAL_EMOTION_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "happy": ("开心", "高兴", "快乐", "幸福", "喜悦"),
        "sad": ("难过", "伤心", "悲伤", "痛苦", "沮丧", "失落"),
        "angry": ("生气", "愤怒", "火大", "恼火", "气愤"),
        "anxious": ("焦虑", "担心", "紧张", "不安", "忧虑"),
        "fear": ("害怕", "恐惧", "恐慌", "担心"),
    }
)

class KnowledgeLoadError(ValueError):
    """A knowledge file could not be turned into items."""


SCENARIO_PREFIX = "用户说"
_QUOTE_CHARS = "\"“”"


class KnowledgeItem(BaseModel):
    """One curated scenario/response record."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: str
    scenario: str = ""
    keywords: Tuple[str, ...] = ()
    emotion_type: Optional[str] = None
    empathy_responses: Tuple[str, ...] = ()


class RetrievalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    item: KnowledgeItem
    score: int
    category: str


class SourceInfo(BaseModel):
    """Citation shown next to an assistant reply."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    kb_name: str = Field(alias="kbName")
    kb_label: str = Field(alias="kbLabel")
    category: str
    scenario: str
    emotion_type: Optional[str] = Field(default=None, alias="emotionType")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def score_item(item: KnowledgeItem, query: str) -> int:
    """Relevance of `item` to `query`.

    A keyword present verbatim earns both the literal (+10) and the
    case-insensitive (+5) bonus; the two checks are independent.
    """
    score = 0
    lowered = query.lower()
    for keyword in item.keywords:
        if keyword in query:
            score += 10
        if keyword.lower() in lowered:
            score += 5

    if item.emotion_type:
        for keyword in RETRIEVAL_EMOTION_KEYWORDS.get(item.emotion_type, ()):
            if keyword in query:
                score += 5

    if item.scenario:
        for word in item.scenario.split():
            if len(word) > 1 and word in query:
                score += 2
    return score


def clean_scenario(scenario: str) -> str:
    """Scenario text for display: the part after "用户说" without quotes, if present."""
    parts = scenario.split(SCENARIO_PREFIX)
    if len(parts) > 1:
        text = parts[1]
        for ch in _QUOTE_CHARS:
            text = text.replace(ch, "")
        text = text.strip()
        if text:
            return text
    return scenario


class KnowledgeBase:
    """Immutable snapshot of the knowledge files, shared by all requests."""

    def __init__(self, items: Iterable[KnowledgeItem], item_kb: Mapping[str, str]) -> None:
        self._items: Tuple[KnowledgeItem, ...] = tuple(items)
        self._item_kb: Mapping[str, str] = MappingProxyType(dict(item_kb))

    @classmethod
    def load(cls, directory: Path | str, files: Sequence[str] = KNOWLEDGE_FILES) -> "KnowledgeBase":
        """Read the named files from `directory`.

        Missing files are skipped quietly; unreadable or malformed files are
        skipped with a warning. Loading never fails.
        """
        base = Path(directory)
        items: List[KnowledgeItem] = []
        item_kb: Dict[str, str] = {}

        for name in files:
            path = base / name
            if not path.exists():
                logger.debug("Knowledge file %s not found, skipping", path)
                continue
            kb_name = path.stem
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                if not isinstance(raw, list):
                    raise KnowledgeLoadError("expected a JSON array of knowledge items")
                loaded = [KnowledgeItem.model_validate(entry) for entry in raw]
            except (OSError, ValueError, ValidationError) as exc:
                logger.warning("Failed to load knowledge file %s: %s", name, exc)
                continue

            added = 0
            for item in loaded:
                if item.id in item_kb:
                    logger.warning("Duplicate knowledge id %s in %s, keeping the first", item.id, name)
                    continue
                items.append(item)
                item_kb[item.id] = kb_name
                added += 1
            logger.info("Loaded %d knowledge items from %s", added, name)

        logger.info("Total knowledge items loaded: %d", len(items))
        return cls(items, item_kb)

    @property
    def items(self) -> Tuple[KnowledgeItem, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def kb_name_for(self, item: KnowledgeItem) -> str:
        return self._item_kb.get(item.id, "unknown")

    def search(self, query: str, top_k: int = 3) -> List[RetrievalResult]:
        """Top `top_k` items by score; zero-score items are never returned."""
        if not query or top_k <= 0:
            return []
        results: List[RetrievalResult] = []
        for item in self._items:
            score = score_item(item, query)
            if score > 0:
                results.append(RetrievalResult(item=item, score=score, category=item.category))
        # sorted() is stable, so equal scores keep load order.
        results = sorted(results, key=lambda r: r.score, reverse=True)
        return results[:top_k]

    def build_context(self, query: str) -> str:
        """Prompt block describing the top 3 matches, or "" when nothing matches."""
        results = self.search(query, 3)
        if not results:
            return ""
        context = "\n\n--- 参考知识库 ---\n"
        for result in results:
            item = result.item
            context += f"\n【{item.category}】{item.scenario}\n"
            if item.empathy_responses:
                context += f"建议回应：{'；'.join(item.empathy_responses)}\n"
        context += "--- 知识库结束 ---\n"
        return context

    def get_sources(self, query: str) -> List[SourceInfo]:
        """Citations for the top 3 matches."""
        sources: List[SourceInfo] = []
        for result in self.search(query, 3):
            item = result.item
            kb_name = self.kb_name_for(item)
            sources.append(
                SourceInfo(
                    id=item.id,
                    kb_name=kb_name,
                    kb_label=KB_LABELS.get(kb_name, kb_name),
                    category=item.category,
                    scenario=clean_scenario(item.scenario),
                    emotion_type=item.emotion_type,
                )
            )
        return sources


_knowledge_base: Optional[KnowledgeBase] = None
_load_lock = threading.Lock()


def get_knowledge_base() -> KnowledgeBase:
    """Process-wide knowledge base, loaded once from KNOWLEDGE_DIR."""
    global _knowledge_base
    if _knowledge_base is None:
        with _load_lock:
            if _knowledge_base is None:
                _knowledge_base = KnowledgeBase.load(KNOWLEDGE_DIR)
    return _knowledge_base


__all__ = [
    "KB_LABELS",
    "KNOWLEDGE_FILES",
    "KnowledgeBase",
    "KnowledgeItem",
    "KnowledgeLoadError",
    "RetrievalResult",
    "SourceInfo",
    "clean_scenario",
    "get_knowledge_base",
    "score_item",
]
