"""HTTP client for the companion chat endpoints, including the SSE stream consumer."""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from .stores import KeyStore

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]
CompleteCallback = Callable[[List[Dict[str, Any]], Optional[Dict[str, Any]]], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[str], Union[None, Awaitable[None]]]


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def parse_event_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode one SSE line into an event dict; None for non-data or unparseable lines."""
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    try:
        event = json.loads(data)
    except ValueError:
        logger.warning("Skipping unparseable stream line: %s", data[:100])
        return None
    return event if isinstance(event, dict) else None


class ChatClient:
    """Talks to /api/chat/send and /api/chat/stream with the stored model credential."""

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        key_store: KeyStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.key_store = key_store or KeyStore()
        self._client = http_client or httpx.AsyncClient(timeout=None)

    async def close(self) -> None:
        await self._client.aclose()

    def _payload(
        self,
        message: str,
        history: Optional[List[Dict[str, str]]],
        user_profile: Optional[str],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "message": message,
            "conversationHistory": history or [],
            "apiKey": self.key_store.modelscope_key(),
        }
        if user_profile:
            payload["userProfile"] = user_profile
        return payload

    async def send_message(
        self,
        message: str,
        *,
        history: Optional[List[Dict[str, str]]] = None,
        user_profile: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Single-shot turn; network failures come back as {success: False, error}."""
        try:
            resp = await self._client.post(
                f"{self.base_url}/api/chat/send",
                json=self._payload(message, history, user_profile),
            )
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Send request failed: %s", exc)
            return {"success": False, "error": str(exc) or "网络请求失败"}

    async def send_message_stream(
        self,
        message: str,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        *,
        history: Optional[List[Dict[str, str]]] = None,
        user_profile: Optional[str] = None,
    ) -> str:
        """Consume one streamed turn and return the accumulated reply text.

        `on_chunk` fires per content frame in arrival order; exactly one of
        `on_complete` / `on_error` fires at the end. A body that ends without
        a terminal frame completes with no sources and no emotion.
        """
        parts: List[str] = []
        try:
            async with self._client.stream(
                "POST",
                f"{self.base_url}/api/chat/stream",
                json=self._payload(message, history, user_profile),
            ) as resp:
                logger.info("Stream response status %d", resp.status_code)
                if resp.status_code >= 400:
                    await resp.aread()
                    await _invoke(on_error, f"HTTP {resp.status_code}")
                    return "".join(parts)

                async for line in resp.aiter_lines():
                    event = parse_event_line(line.strip())
                    if event is None:
                        continue
                    kind = event.get("type")
                    if kind == "start":
                        logger.debug("Stream started")
                    elif kind == "content":
                        data = event.get("data") or ""
                        parts.append(data)
                        await _invoke(on_chunk, data)
                    elif kind == "end":
                        logger.info("Stream ended after %d chunks", len(parts))
                        await _invoke(on_complete, event.get("sources") or [], event.get("emotion"))
                        return "".join(parts)
                    elif kind == "error":
                        logger.error("Stream error event: %s", event.get("data"))
                        await _invoke(on_error, str(event.get("data") or "流式请求失败"))
                        return "".join(parts)
        except httpx.HTTPError as exc:
            logger.error("Stream request failed: %s", exc)
            await _invoke(on_error, str(exc) or "流式请求失败")
            return "".join(parts)

        await _invoke(on_complete, [], None)
        return "".join(parts)


__all__ = ["ChatClient", "parse_event_line"]
