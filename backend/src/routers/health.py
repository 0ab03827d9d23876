from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from src.companion.config import SERVICE_NAME

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
