"""Emotion router: stateless message analysis."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.companion.emotion import analyze_emotion

router = APIRouter(prefix="/api/emotion", tags=["emotion"])


class AnalyzeRequest(BaseModel):
    """Request body for POST /api/emotion/analyze."""

    message: str = Field("", description="Text to analyze")


@router.post("/analyze")
async def analyze(request: AnalyzeRequest) -> dict:
    """Classify the message and return the full emotion result."""
    result = analyze_emotion(request.message)
    return {"success": True, "data": result.model_dump(by_alias=True)}


@router.get("/history")
async def history() -> dict:
    """Emotion history lives on the client; the server keeps none."""
    return {"success": True, "data": {"current": "normal", "history": []}}
