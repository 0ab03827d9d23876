"""Diary router: placeholder endpoints returning static payloads."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body

router = APIRouter(prefix="/api/diary", tags=["diary"])


@router.post("/save")
async def save(payload: dict[str, Any] | None = Body(None)) -> dict:
    return {"success": True, "message": "日记保存成功"}


@router.get("/list")
async def list_entries() -> dict:
    return {"success": True, "data": []}


@router.get("/{entry_id}")
async def get_entry(entry_id: str) -> dict:
    return {"success": True, "data": None}
