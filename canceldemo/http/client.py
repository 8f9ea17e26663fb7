# canceldemo/http/client.py
from __future__ import annotations
import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from canceldemo.app.settings import CLIENT_CLOSED_REQUEST, settings
from canceldemo.core.ids import requestId
from canceldemo.core.logging import resetLogContext, setLogContext
from canceldemo.core.outcome import AggregateOutcome, FailureKind, Outcome
from canceldemo.core.signal import CancellationSignal
from canceldemo.core.time import elapsedMs, nowMonotonicMs

logger = logging.getLogger(__name__)

__all__ = ["CancellingClient"]



class CancellingClient:
    """
    HTTP caller whose requests can be abandoned through a CancellationSignal.

    Owns one httpx.AsyncClient for its lifetime; use as an async context manager:

        async with CancellingClient() as client:
            outcome = await client.get(url, signal=trigger)

    Every call ends in exactly one Outcome: COMPLETED (2xx), CANCELLED (trigger
    fired first, or the server answered 499) or FAILED (transport, timeout,
    other status, anything unexpected).
    """
    def __init__(
        self,
        *,
        timeoutMs: int | None = None,
        cancelledStatus: int = CLIENT_CLOSED_REQUEST,
        transport: httpx.AsyncBaseTransport | None = None,
        baseUrl: str = "",
    ) -> None:
        if timeoutMs is None:
            timeoutMs = int(settings("client.timeoutMs", 120_000))
        # Separate connect/read/write/pool timeouts can be useful; keep single total here.
        if timeoutMs <= 0:
            timeoutMs = 1
        self.timeoutMs = timeoutMs
        self.cancelledStatus = cancelledStatus
        self._transport = transport
        self._baseUrl = baseUrl
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> CancellingClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeoutMs / 1_000),
            transport=self._transport,
            base_url=self._baseUrl,
        )
        return self

    async def __aexit__(self, excType, exc, tb) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    def _require(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("CancellingClient used outside of 'async with'")
        return self._client

    async def get(self, url: str, *, signal: CancellationSignal | None = None, params: dict[str, Any] | None = None) -> Outcome:
        """
        GET `url`, abandoning it as soon as `signal` fires.

        Never raises for cancellation or HTTP/transport errors; those are outcomes.
        asyncio.CancelledError of the calling task still propagates.
        """
        client = self._require()
        signal = signal or CancellationSignal.never()
        token = setLogContext(requestId=requestId("call"))
        try:
            return await self._send(client, url, signal, params)
        finally:
            resetLogContext(token)

    async def _send(self, client: httpx.AsyncClient, url: str, signal: CancellationSignal, params: dict[str, Any] | None) -> Outcome:
        startedMs = nowMonotonicMs()

        if signal.fired:
            logger.info("Not sending GET %s, trigger already fired", url)
            return Outcome.cancelled(signal.reason, url=url)

        logger.info("Sending GET %s", url)
        call = asyncio.ensure_future(client.get(url, params=params))
        fired = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({call, fired}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            if not fired.done():
                fired.cancel()

        if not call.done():
            # Trigger won: drop the request, which closes its connection
            call.cancel()
            try:
                await call
            except asyncio.CancelledError:
                pass
            except Exception as err:
                logger.debug("Abandoned request ended with %s", err)
            outcome = Outcome.cancelled(signal.reason, url=url, elapsedMs=elapsedMs(startedMs))
            logger.info("Request was canceled: %s", outcome.describe())
            return outcome

        try:
            resp = call.result()
        except httpx.TimeoutException as err:
            outcome = Outcome.failed(FailureKind.TIMEOUT, f"{type(err).__name__}: {err}", url=url, elapsedMs=elapsedMs(startedMs))
            logger.warning("Request timed out: %s", outcome.describe())
            return outcome
        except httpx.TransportError as err:
            outcome = Outcome.failed(FailureKind.TRANSPORT, f"{type(err).__name__}: {err}", url=url, elapsedMs=elapsedMs(startedMs))
            logger.error("Connection failed: %s", outcome.describe())
            return outcome
        except Exception as err:
            outcome = Outcome.failed(FailureKind.UNEXPECTED, f"{type(err).__name__}: {err}", url=url, elapsedMs=elapsedMs(startedMs))
            logger.exception("An error occurred: %s", outcome.describe())
            return outcome

        return self._fromResponse(url, resp, elapsedMs(startedMs))

    def _fromResponse(self, url: str, resp: httpx.Response, tookMs: int) -> Outcome:
        status = resp.status_code
        if status == self.cancelledStatus:
            outcome = Outcome.cancelled("server closed request", url=url, status=status, elapsedMs=tookMs, serverReported=True)
            logger.info("Response received: %d (%s)", status, outcome.describe())
            return outcome
        if 200 <= status < 300:
            payload: Any = resp.text
            # Best-effort JSON parse
            if "json" in resp.headers.get("Content-Type", "").lower():
                try:
                    payload = resp.json()
                except ValueError:
                    # Keep going; caller still has the text
                    pass
            outcome = Outcome.completed(payload, url=url, status=status, elapsedMs=tookMs)
            logger.info("Response received: %d", status)
            return outcome
        outcome = Outcome.failed(FailureKind.HTTP_STATUS, f"HTTP {status}: {resp.text[:200]}", url=url, status=status, elapsedMs=tookMs)
        logger.warning("Response received: %s", outcome.describe())
        return outcome

    async def getAll(self, urls: Sequence[str], *, signal: CancellationSignal | None = None) -> AggregateOutcome:
        """Call every url concurrently; one shared trigger cancels all of them."""
        signal = signal or CancellationSignal.never()
        parts = await asyncio.gather(*(self.get(url, signal=signal) for url in urls))
        aggregate = AggregateOutcome.of(parts)
        for part in aggregate.parts:
            logger.info("  %s -> %s", part.url, part.describe())
        return aggregate
