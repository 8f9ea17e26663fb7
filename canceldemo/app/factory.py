# canceldemo/app/factory.py
from __future__ import annotations
import logging
from collections.abc import Sequence

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import Response

from canceldemo.app.lifecycle import life
from canceldemo.app.settings import cancelledStatusCode, hostSettings
from canceldemo.core.errors import RequestCancelledError
from canceldemo.middleware.cancellation import CancellationMiddleware

logger = logging.getLogger(__name__)

__all__ = ["createApp"]



async def _cancelledHandler(request: Request, exc: Exception) -> Response:
    logger.info("Request to %s was cancelled: %s", request.url.path, exc)
    return Response(status_code=cancelledStatusCode())



def createApp(
    hostKey: str,
    *,
    routers: Sequence[APIRouter] = (),
    cancellationMiddleware: bool = False,
) -> FastAPI:
    """
    Build one host.

    With `cancellationMiddleware` every request gets a connection-linked signal
    and escaped cancellations are turned into 499 by the middleware; without
    it an exception handler does that mapping for RequestCancelledError.
    """
    serverName = hostSettings(hostKey)["name"]
    app = FastAPI(title=serverName, lifespan=life)
    app.state.hostKey = hostKey
    app.state.serverName = serverName

    if cancellationMiddleware:
        app.add_middleware(CancellationMiddleware)
    else:
        app.add_exception_handler(RequestCancelledError, _cancelledHandler)

    from canceldemo.app.web import router as webRouter
    app.include_router(webRouter)
    for router in routers:
        app.include_router(router)

    logger.debug("%s initialized with %d router(s)", serverName, len(routers))
    return app
