"""Chat router: single-shot and server-sent-event streaming endpoints."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from src.companion.emergency import SAFETY_EMOTION, SAFETY_RESPONSE
from src.companion.models import ChatRequest, EmotionSummary, StreamEvent
from src.companion.service import ChatService, get_chat_service
from src.llm_core import GENERIC_FAILURE_MESSAGE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def sse_frame(payload: dict[str, Any]) -> str:
    """One `data: <json>` frame terminated by a blank line."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _emergency_events() -> list[StreamEvent]:
    return [
        StreamEvent(type="content", data=SAFETY_RESPONSE),
        StreamEvent(type="end", sources=[], emotion=EmotionSummary(**SAFETY_EMOTION), is_emergency=True),
    ]


async def _event_stream(service: ChatService, payload: Any) -> AsyncIterator[str]:
    yield sse_frame({"type": "start"})

    chunk_count = 0
    try:
        request = ChatRequest.model_validate(payload)
        logger.info("Stream request received (history length %d)", len(request.conversation_history))

        if service.check_emergency(request.message):
            logger.warning("Crisis keyword detected at stream endpoint")
            for event in _emergency_events():
                yield sse_frame(event.to_wire())
            return

        async for event in service.process_chat_stream(request):
            if event.type == "content":
                chunk_count += 1
            yield sse_frame(event.to_wire())
    except Exception as e:
        logger.exception("Stream failed after %d chunks", chunk_count)
        yield sse_frame({"type": "error", "data": str(e) or GENERIC_FAILURE_MESSAGE})
        return
    logger.info("Total chunks sent: %d", chunk_count)


# Bodies are validated inside the handlers: malformed input ends as a 500 or an
# error frame, never as a 422.


@router.post("/send")
async def send(payload: Any = Body(None), service: ChatService = Depends(get_chat_service)) -> JSONResponse:
    """Run one turn and return the whole reply with emotion and citations."""
    try:
        request = ChatRequest.model_validate(payload)
        if service.check_emergency(request.message):
            logger.warning("Crisis keyword detected at send endpoint")
            return JSONResponse(service.emergency_result().to_wire())
        result = await service.process_chat(request)
        return JSONResponse(result.to_wire())
    except Exception as e:
        logger.exception("Chat turn failed")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e) or "处理对话时发生错误"},
        )


@router.post("/stream")
async def stream(payload: Any = Body(None), service: ChatService = Depends(get_chat_service)) -> StreamingResponse:
    """Stream one turn as SSE: start, content*, then a single end or error frame."""
    return StreamingResponse(
        _event_stream(service, payload),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
