# canceldemo/api/signals.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import Request

from canceldemo.app.context import currentConnectionSignal
from canceldemo.core.signal import CancellationSignal
from canceldemo.middleware.cancellation import SIGNAL_STATE_KEY

logger = logging.getLogger(__name__)

__all__ = [
    "PROPERTY_KEY", "requestSignal", "requestAborted",
    "getCancellationSignal", "ambientSignal",
]

# Key inside request.state.properties, filled by cancellationFilter
PROPERTY_KEY = "CancellationSignal"



def requestSignal(request: Request) -> CancellationSignal:
    """
    Dependency: the signal the cancellation middleware attached to this request.

    Returns a never-firing signal when the app runs without the middleware.
    """
    signal = request.scope.get("state", {}).get(SIGNAL_STATE_KEY)
    if isinstance(signal, CancellationSignal):
        return signal
    logger.debug("No cancellation middleware in front of %s", request.url.path)
    return CancellationSignal.never()



async def requestAborted(request: Request) -> AsyncIterator[CancellationSignal]:
    """
    Dependency: a signal that fires when the client disconnects.

    For hosts without the cancellation middleware; watches `receive` itself
    for as long as the endpoint runs.
    """
    signal = CancellationSignal(name="requestAborted")

    async def watch() -> None:
        while True:
            message = await request.receive()
            if message["type"] == "http.disconnect":
                signal.fire("client disconnected")
                return

    watcher = asyncio.create_task(watch())
    try:
        yield signal
    finally:
        watcher.cancel()



def getCancellationSignal(request: Request) -> CancellationSignal:
    """Lookup of the signal stored in the request properties by cancellationFilter."""
    properties = getattr(request.state, "properties", None)
    if isinstance(properties, dict):
        signal = properties.get(PROPERTY_KEY)
        if isinstance(signal, CancellationSignal):
            return signal
    return CancellationSignal.never()



def ambientSignal(request: Request) -> CancellationSignal:
    """Signal of the connection bound to the current task, else the property lookup."""
    signal = currentConnectionSignal()
    if signal is not None:
        return signal
    return getCancellationSignal(request)
