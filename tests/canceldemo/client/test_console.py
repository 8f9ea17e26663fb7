import asyncio
import os
import signal
import sys

import httpx
import pytest

from canceldemo.client.console import callOnce, callParallel, exitCodeFor, runConsoleLoop
from canceldemo.client.interrupt import interruptTrigger
from canceldemo.core.outcome import OutcomeKind
from canceldemo.core.signal import CancellationSignal


def test_exit_codes():
    assert exitCodeFor(OutcomeKind.COMPLETED) == 0
    assert exitCodeFor(OutcomeKind.CANCELLED) == 0
    assert exitCodeFor(OutcomeKind.FAILED) == 1


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
async def test_first_interrupt_fires_trigger():
    trigger = CancellationSignal()
    with interruptTrigger(trigger):
        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.wait_for(trigger.wait(), timeout=1.0)
        # Second one is swallowed too
        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.sleep(0.05)
    assert trigger.reason == "interrupted by user"


@pytest.mark.asyncio
async def test_call_once_with_timeout_trigger():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(200)

    outcome = await callOnce("http://svc/delay/10", cancelAfterMs=50, transport=httpx.MockTransport(handler))
    assert outcome.isCancelled


@pytest.mark.asyncio
async def test_call_parallel_completes():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "ok"})

    aggregate = await callParallel(["http://a/x", "http://b/x"], transport=httpx.MockTransport(handler))
    assert aggregate.kind is OutcomeKind.COMPLETED
    assert len(aggregate.parts) == 2


@pytest.mark.asyncio
async def test_console_loop_repeats_until_cancelled():
    trigger = CancellationSignal()
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 3:
            trigger.fire("interrupted by user")
            await asyncio.sleep(10)
        return httpx.Response(200, json={"message": "Completed after 0 seconds"})

    outcomes = await runConsoleLoop("http://svc/delay/0", trigger=trigger, transport=httpx.MockTransport(handler))
    assert [outcome.kind for outcome in outcomes] == [
        OutcomeKind.COMPLETED, OutcomeKind.COMPLETED, OutcomeKind.CANCELLED,
    ]


@pytest.mark.asyncio
async def test_console_loop_max_requests():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    outcomes = await runConsoleLoop("http://svc/x", maxRequests=2, transport=httpx.MockTransport(handler))
    assert len(outcomes) == 2


@pytest.mark.asyncio
async def test_console_loop_retries_after_failure_until_cancelled():
    trigger = CancellationSignal()

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused")

    trigger.fireAfter(0.05)
    outcomes = await runConsoleLoop(
        "http://svc/x",
        retryDelaySeconds=10,
        trigger=trigger,
        transport=httpx.MockTransport(handler),
    )
    assert len(outcomes) == 1
    assert outcomes[0].isFailed
