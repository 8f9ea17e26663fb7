# canceldemo/api/example.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from canceldemo.api.delay import Seconds, awaitDelay
from canceldemo.api.filters import cancellationFilter
from canceldemo.api.models import DelayResult
from canceldemo.api.signals import ambientSignal, getCancellationSignal, requestSignal
from canceldemo.app.settings import hostSettings
from canceldemo.core.signal import CancellationSignal, sleepThroughCancellation

logger = logging.getLogger(__name__)

__all__ = ["router"]

router = APIRouter(prefix="/api/example", dependencies=[Depends(cancellationFilter)])



@router.get("/with-token/{seconds}")
async def withCancellationSignal(seconds: Seconds, signal: CancellationSignal = Depends(requestSignal)):
    return await awaitDelay(seconds, signal, tag="WithToken", method="WithCancellationSignal")



@router.get("/without-token/{seconds}")
async def withoutCancellationSignal(seconds: Seconds, request: Request):
    return await awaitDelay(
        seconds,
        getCancellationSignal(request),
        tag="WithoutToken",
        method="WithoutCancellationSignal (using request properties)",
    )



@router.get("/owin-context/{seconds}")
async def usingConnectionContext(seconds: Seconds, request: Request):
    return await awaitDelay(
        seconds,
        ambientSignal(request),
        tag="ConnectionContext",
        method="UsingConnectionContext",
    )



@router.get("/no-cancellation/{seconds}")
async def noCancellationHandling(seconds: Seconds):
    # No signal here: the middleware notices the disconnect and aborts this task,
    # which takes effect at the end of the current one-second step.
    logger.info("[NoCancellation] Starting %ds delay WITHOUT explicit cancellation handling", seconds)
    for step in range(seconds):
        await sleepThroughCancellation(1.0)
        logger.info("[NoCancellation] Progress: %d/%d seconds", step + 1, seconds)
    logger.info("[NoCancellation] Completed %ds delay", seconds)

    result = DelayResult.after(
        seconds,
        hostSettings("api")["name"],
        "NoCancellationHandling (middleware will handle)",
    )
    return JSONResponse(result.model_dump(exclude_none=True), status_code=200)
