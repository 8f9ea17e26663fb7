# canceldemo/app/web.py
from __future__ import annotations

from fastapi import APIRouter, Request

from canceldemo.core.time import nowMs

router = APIRouter()



@router.get("/health")
async def health(request: Request):
    return {"ok": True, "ts": nowMs(), "server": getattr(request.app.state, "serverName", "")}
