# canceldemo/middleware/cancellation.py
from __future__ import annotations

import asyncio
import logging
from typing import Any

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from canceldemo.app.context import ConnectionContext, bindConnection, resetConnection
from canceldemo.app.settings import cancelledStatusCode, settings
from canceldemo.core.errors import RequestCancelledError
from canceldemo.core.ids import requestId
from canceldemo.core.logging import resetLogContext, setLogContext
from canceldemo.core.signal import CancellationSignal

logger = logging.getLogger(__name__)

__all__ = ["SIGNAL_STATE_KEY", "CancellationMiddleware", "ResponseGuard"]

# Key under scope["state"] (request.state) holding the request's signal
SIGNAL_STATE_KEY = "cancellationSignal"



class ResponseGuard:
    """Wraps ASGI `send` so at most one response is ever started."""
    def __init__(self, send: Send) -> None:
        self._send = send
        self.started = False
        self.status: int | None = None

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            if self.started:
                logger.warning("Dropping second response start (status %s)", message.get("status"))
                return
            self.started = True
            self.status = int(message.get("status", 0))
        await self._send(message)



class CancellationMiddleware:
    """
    Links every HTTP request to the liveness of its connection.

    - Creates a `request` signal linked to a raw `connection` signal and exposes
      it through request.state, the connection context and the log context.
    - Watches the real `receive` for `http.disconnect` while the handler runs.
    - When the connection drops first, fires the request signal, gives the
      handler `forceAbortGraceMs` to unwind on its own, then cancels it.
    - Converts the resulting abort into a 499 response unless the handler
      already wrote one.
    """
    def __init__(self, app: ASGIApp, *, statusCode: int | None = None, forceAbortGraceMs: int | None = None) -> None:
        self.app = app
        self.statusCode = statusCode if statusCode is not None else cancelledStatusCode()
        if forceAbortGraceMs is None:
            forceAbortGraceMs = int(settings("cancellation.forceAbortGraceMs", 100))
        self.graceSeconds = max(0, forceAbortGraceMs) / 1000.0

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        connectionSignal = CancellationSignal(name="connection")
        requestSignal = CancellationSignal.linked(connectionSignal, name="request")
        connection = ConnectionContext(
            id=requestId(),
            path=str(scope.get("path", "")),
            signal=requestSignal,
        )
        scope.setdefault("state", {})[SIGNAL_STATE_KEY] = requestSignal

        queue: asyncio.Queue[Message] = asyncio.Queue()
        guard = ResponseGuard(send)

        logToken = setLogContext(requestId=connection.id, path=connection.path)
        token = bindConnection(connection)
        try:
            # Tasks copy the current context, so the handler sees the bound connection
            handlerTask = asyncio.create_task(self.app(scope, queue.get, guard.send))
        finally:
            resetConnection(token)
        watcherTask = asyncio.create_task(self._watchConnection(receive, queue, connectionSignal))

        try:
            await self._race(handlerTask, connectionSignal, requestSignal)
            await self._finish(handlerTask, guard, requestSignal)
        finally:
            for task in (handlerTask, watcherTask):
                if not task.done():
                    task.cancel()
            resetLogContext(logToken)

    async def _watchConnection(self, receive: Receive, queue: asyncio.Queue[Message], connectionSignal: CancellationSignal) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                connectionSignal.fire("client disconnected")
                await queue.put(message)
                return
            await queue.put(message)

    async def _race(self, handlerTask: asyncio.Task[Any], connectionSignal: CancellationSignal, requestSignal: CancellationSignal) -> None:
        dropped = asyncio.ensure_future(connectionSignal.wait())
        try:
            done, _ = await asyncio.wait({handlerTask, dropped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not dropped.done():
                dropped.cancel()
        if handlerTask in done:
            return

        logger.info("Client disconnected, cancelling request")
        requestSignal.fire(connectionSignal.reason)
        if self.graceSeconds > 0:
            await asyncio.wait({handlerTask}, timeout=self.graceSeconds)
        if not handlerTask.done():
            logger.debug("Handler ignored the signal, aborting its task")
            handlerTask.cancel()
            await asyncio.wait({handlerTask})

    async def _finish(self, handlerTask: asyncio.Task[Any], guard: ResponseGuard, requestSignal: CancellationSignal) -> None:
        if handlerTask.cancelled():
            await self._writeCancelled(guard, requestSignal)
            return
        err = handlerTask.exception()
        if err is None:
            if requestSignal.fired and guard.status == self.statusCode:
                logger.info("Request was cancelled by client (handled by endpoint)")
            return
        if isinstance(err, RequestCancelledError):
            await self._writeCancelled(guard, requestSignal)
            return
        logger.error("Request failed: %s", err)
        raise err

    async def _writeCancelled(self, guard: ResponseGuard, requestSignal: CancellationSignal) -> None:
        logger.info("Request was cancelled by client (%s)", requestSignal.reason or "no reason")
        if guard.started:
            # Handler already answered; one response per request
            return
        try:
            await guard.send({
                "type": "http.response.start",
                "status": self.statusCode,
                "headers": [(b"content-length", b"0")],
            })
            await guard.send({"type": "http.response.body", "body": b"", "more_body": False})
        except OSError as err:
            logger.debug("Could not write cancelled response: %s", err)
