import asyncio
import time

import httpx
import pytest

from canceldemo.core.logging import clearLogContext, getLogContext, setLogContext
from canceldemo.core.outcome import FailureKind, OutcomeKind
from canceldemo.core.signal import CancellationSignal
from canceldemo.http.client import CancellingClient


def _client(handler, **kwargs) -> CancellingClient:
    return CancellingClient(transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_completed_json():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "Completed after 1 seconds"})

    async with _client(handler) as client:
        outcome = await client.get("http://svc/delay/1")

    assert outcome.kind is OutcomeKind.COMPLETED
    assert outcome.status == 200
    assert outcome.payload == {"message": "Completed after 1 seconds"}
    assert outcome.url == "http://svc/delay/1"


@pytest.mark.asyncio
async def test_completed_text_keeps_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="plain", headers={"Content-Type": "text/plain"})

    async with _client(handler) as client:
        outcome = await client.get("http://svc/x")
    assert outcome.payload == "plain"


@pytest.mark.asyncio
async def test_params_are_sent():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["query"] = dict(request.url.params)
        return httpx.Response(200, json=[])

    async with _client(handler) as client:
        await client.get("http://svc/weatherforecast", params={"days": 1})
    assert seen["query"] == {"days": "1"}


@pytest.mark.asyncio
async def test_server_cancelled_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(499)

    async with _client(handler) as client:
        outcome = await client.get("http://svc/delay/10")

    assert outcome.isCancelled
    assert outcome.serverReported
    assert outcome.status == 499


@pytest.mark.asyncio
async def test_other_status_is_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="kaboom")

    async with _client(handler) as client:
        outcome = await client.get("http://svc/delay/1")

    assert outcome.isFailed
    assert outcome.failure is FailureKind.HTTP_STATUS
    assert "kaboom" in outcome.reason


@pytest.mark.asyncio
@pytest.mark.parametrize(("error", "failure"), [
    (httpx.ConnectError("refused"), FailureKind.TRANSPORT),
    (httpx.ReadTimeout("slow"), FailureKind.TIMEOUT),
    (RuntimeError("weird"), FailureKind.UNEXPECTED),
])
async def test_errors_become_failures(error, failure):
    def handler(request: httpx.Request) -> httpx.Response:
        raise error

    async with _client(handler) as client:
        outcome = await client.get("http://svc/delay/1")

    assert outcome.isFailed
    assert outcome.failure is failure


@pytest.mark.asyncio
async def test_trigger_cancels_in_flight_request():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(200)

    trigger = CancellationSignal()
    trigger.fireAfter(0.05, "stop")
    started = time.monotonic()
    async with _client(handler) as client:
        outcome = await client.get("http://svc/delay/10", signal=trigger)

    assert outcome.isCancelled
    assert not outcome.serverReported
    assert outcome.reason == "stop"
    assert time.monotonic() - started < 1.0


@pytest.mark.asyncio
async def test_already_fired_trigger_sends_nothing():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    trigger = CancellationSignal()
    trigger.fire("early")
    async with _client(handler) as client:
        outcome = await client.get("http://svc/delay/1", signal=trigger)

    assert outcome.isCancelled
    assert calls == []


@pytest.mark.asyncio
async def test_get_all_shared_trigger_cancels_every_call():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(200)

    trigger = CancellationSignal()
    trigger.fireAfter(0.05)
    async with _client(handler) as client:
        aggregate = await client.getAll(["http://a/delay/10", "http://b/delay/10"], signal=trigger)

    assert aggregate.isCancelled
    assert [part.isCancelled for part in aggregate.parts] == [True, True]


@pytest.mark.asyncio
async def test_get_all_mixed():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "down":
            raise httpx.ConnectError("refused")
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        aggregate = await client.getAll(["http://up/x", "http://down/x"])
    assert aggregate.kind is OutcomeKind.FAILED


@pytest.mark.asyncio
async def test_used_outside_context_manager():
    client = CancellingClient()
    with pytest.raises(RuntimeError):
        await client.get("http://svc/x")


@pytest.mark.asyncio
async def test_call_id_does_not_leak_into_caller_log_context():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    clearLogContext()
    async with _client(handler) as client:
        await client.get("http://svc/x")
    assert getLogContext() is None

    setLogContext(host="runner")
    try:
        async with _client(handler) as client:
            await client.get("http://svc/x")
            await client.getAll(["http://svc/a", "http://svc/b"])
        assert getLogContext() == {"host": "runner"}
    finally:
        clearLogContext()


@pytest.mark.asyncio
async def test_call_id_is_visible_while_request_runs():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ctx"] = dict(getLogContext() or {})
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        await client.get("http://svc/x")
    assert seen["ctx"]["requestId"].startswith("call_")
