# canceldemo/api/delay.py
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse, Response

from canceldemo.api.filters import cancellationFilter
from canceldemo.api.models import DelayResult
from canceldemo.api.signals import getCancellationSignal, requestSignal
from canceldemo.app.settings import cancelledStatusCode, hostSettings
from canceldemo.core.errors import RequestCancelledError
from canceldemo.core.signal import CancellationSignal, sleepOrCancel

logger = logging.getLogger(__name__)

__all__ = ["router", "awaitDelay", "Seconds"]

Seconds = Annotated[int, Path(ge=0, description="How long to wait, in whole seconds")]

router = APIRouter(prefix="/api", dependencies=[Depends(cancellationFilter)])



async def awaitDelay(seconds: int, signal: CancellationSignal, *, tag: str, method: str | None = None, hostKey: str = "api") -> Response:
    """
    Wait `seconds` under `signal` and map the result to a response.

    200 with DelayResult on natural completion, the cancelled status when the
    signal fired first. Anything else propagates.
    """
    try:
        logger.info("[%s] Starting delay of %d seconds...", tag, seconds)
        await sleepOrCancel(seconds, signal)
        logger.info("[%s] Completed delay of %d seconds", tag, seconds)
    except RequestCancelledError:
        logger.info("[%s] Request was cancelled by the client.", tag)
        return Response(status_code=cancelledStatusCode())

    result = DelayResult.after(seconds, hostSettings(hostKey)["name"], method)
    return JSONResponse(result.model_dump(exclude_none=True), status_code=200)



@router.get("/delay/{seconds}")
async def getDelay(seconds: Seconds, signal: CancellationSignal = Depends(requestSignal)):
    return await awaitDelay(
        seconds,
        signal,
        tag="DelayController",
        method="DelayController with explicit cancellation signal",
    )



@router.get("/delay-alt/{seconds}")
async def getDelayAlternative(seconds: Seconds, request: Request):
    # Signal looked up from the request properties instead of being injected
    signal = getCancellationSignal(request)
    return await awaitDelay(
        seconds,
        signal,
        tag="DelayController-Alt",
        method="DelayController with extracted cancellation signal",
    )
