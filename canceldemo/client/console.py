# canceldemo/client/console.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import httpx

from canceldemo.client.interrupt import interruptTrigger
from canceldemo.core.errors import RequestCancelledError
from canceldemo.core.outcome import AggregateOutcome, Outcome, OutcomeKind
from canceldemo.core.signal import CancellationSignal, sleepOrCancel
from canceldemo.http.client import CancellingClient

logger = logging.getLogger(__name__)

__all__ = ["exitCodeFor", "callOnce", "callParallel", "runConsoleLoop"]



def exitCodeFor(kind: OutcomeKind) -> int:
    # Cancellation is an expected terminal state, not an error
    return 1 if kind is OutcomeKind.FAILED else 0



def _armTimeout(trigger: CancellationSignal, cancelAfterMs: int | None) -> asyncio.TimerHandle | None:
    if cancelAfterMs is None or cancelAfterMs < 0:
        return None
    logger.info("Request will be cancelled after %d ms (or on Ctrl+C)", cancelAfterMs)
    return trigger.fireAfter(cancelAfterMs / 1000.0)



async def callOnce(
    url: str,
    *,
    cancelAfterMs: int | None = None,
    trigger: CancellationSignal | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Outcome:
    """One GET, cancellable by timeout and by Ctrl+C."""
    trigger = trigger or CancellationSignal(name="call")
    timer = _armTimeout(trigger, cancelAfterMs)
    try:
        with interruptTrigger(trigger):
            async with CancellingClient(transport=transport) as client:
                outcome = await client.get(url, signal=trigger)
    finally:
        if timer is not None:
            timer.cancel()
    logger.info("%s: %s", url, outcome.describe())
    return outcome



async def callParallel(
    urls: Sequence[str],
    *,
    cancelAfterMs: int | None = None,
    trigger: CancellationSignal | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AggregateOutcome:
    """Concurrent GETs sharing one trigger."""
    trigger = trigger or CancellationSignal(name="parallel")
    timer = _armTimeout(trigger, cancelAfterMs)
    try:
        with interruptTrigger(trigger):
            async with CancellingClient(transport=transport) as client:
                aggregate = await client.getAll(urls, signal=trigger)
    finally:
        if timer is not None:
            timer.cancel()
    logger.info("Parallel call finished: %s", aggregate.kind.value)
    return aggregate



async def runConsoleLoop(
    url: str,
    *,
    maxRequests: int | None = None,
    retryDelaySeconds: float = 1.0,
    trigger: CancellationSignal | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[Outcome]:
    """
    Keep calling `url` until the first Ctrl+C cancels the in-flight request.

    Returns the outcome of every request made; never terminates mid-request.
    """
    trigger = trigger or CancellationSignal(name="console")
    outcomes: list[Outcome] = []
    logger.info("Calling %s repeatedly, press Ctrl+C to cancel", url)
    with interruptTrigger(trigger):
        async with CancellingClient(transport=transport) as client:
            while not trigger.fired:
                logger.info("Sending request to the long-running endpoint...")
                outcome = await client.get(url, signal=trigger)
                outcomes.append(outcome)
                if outcome.isCancelled:
                    logger.info("Request was canceled.")
                    break
                if maxRequests is not None and len(outcomes) >= maxRequests:
                    break
                if outcome.isFailed:
                    logger.warning("An error occurred: %s", outcome.reason)
                    try:
                        await sleepOrCancel(retryDelaySeconds, trigger)
                    except RequestCancelledError:
                        break
    logger.info("Console client finished after %d request(s)", len(outcomes))
    return outcomes
