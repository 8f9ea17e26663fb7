import asyncio
import time

import pytest

from canceldemo.core.errors import RequestCancelledError
from canceldemo.core.signal import (
    CancellationSignal,
    SignalState,
    sleepOrCancel,
    sleepThroughCancellation,
)


@pytest.mark.asyncio
async def test_fire_is_one_shot():
    signal = CancellationSignal(name="t")
    assert signal.state is SignalState.ARMED
    assert signal.fire("first") is True
    assert signal.fire("second") is False
    assert signal.state is SignalState.FIRED
    assert signal.reason == "first"


@pytest.mark.asyncio
async def test_default_reason():
    signal = CancellationSignal()
    signal.fire()
    assert signal.reason == "cancelled"


@pytest.mark.asyncio
async def test_linked_child_fires_with_parent_but_not_back():
    parent = CancellationSignal(name="parent")
    other = CancellationSignal(name="other")
    child = CancellationSignal.linked(parent, other, name="child")

    child.fire("own")
    assert not parent.fired and not other.fired

    parent2 = CancellationSignal(name="parent2")
    child2 = CancellationSignal.linked(parent2)
    parent2.fire("gone")
    assert child2.fired
    assert child2.reason == "gone"


@pytest.mark.asyncio
async def test_on_fire_callbacks():
    signal = CancellationSignal()
    seen: list[str] = []
    signal.onFire(lambda s: seen.append("a"))
    unsubscribe = signal.onFire(lambda s: seen.append("b"))
    unsubscribe()
    signal.fire()
    signal.fire()
    assert seen == ["a"]

    # Already fired: runs right away
    signal.onFire(lambda s: seen.append("late"))
    assert seen == ["a", "late"]


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_others():
    signal = CancellationSignal()
    seen: list[int] = []

    def broken(_):
        raise ValueError("boom")

    signal.onFire(broken)
    signal.onFire(lambda s: seen.append(1))
    assert signal.fire() is True
    assert seen == [1]


@pytest.mark.asyncio
async def test_wait_wakes_on_fire():
    signal = CancellationSignal()
    asyncio.get_running_loop().call_later(0.01, signal.fire)
    await asyncio.wait_for(signal.wait(), timeout=1.0)
    assert signal.fired


@pytest.mark.asyncio
async def test_fire_after_and_disarm():
    signal = CancellationSignal()
    handle = signal.fireAfter(0.01)
    await asyncio.wait_for(signal.wait(), timeout=1.0)
    assert signal.reason.startswith("timeout")

    disarmed = CancellationSignal()
    handle = disarmed.fireAfter(0.01)
    handle.cancel()
    await asyncio.sleep(0.05)
    assert not disarmed.fired


@pytest.mark.asyncio
async def test_raise_if_fired():
    signal = CancellationSignal()
    signal.raiseIfFired()
    signal.fire("stop")
    with pytest.raises(RequestCancelledError):
        signal.raiseIfFired()


@pytest.mark.asyncio
async def test_sleep_or_cancel_completes():
    signal = CancellationSignal()
    await sleepOrCancel(0.01, signal)
    await sleepOrCancel(0, signal)
    await sleepOrCancel(0.01)
    assert not signal.fired


@pytest.mark.asyncio
async def test_sleep_or_cancel_wakes_early():
    signal = CancellationSignal()
    signal.fireAfter(0.05)
    started = time.monotonic()
    with pytest.raises(RequestCancelledError):
        await sleepOrCancel(10, signal)
    assert time.monotonic() - started < 1.0


@pytest.mark.asyncio
async def test_sleep_or_cancel_already_fired():
    signal = CancellationSignal()
    signal.fire()
    with pytest.raises(RequestCancelledError):
        await sleepOrCancel(0, signal)


@pytest.mark.asyncio
async def test_sleep_through_cancellation_finishes_step():
    task = asyncio.create_task(sleepThroughCancellation(0.2))
    await asyncio.sleep(0.02)
    started = time.monotonic()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    # The step ran to its end before the cancellation surfaced
    assert time.monotonic() - started >= 0.1


def test_never_is_fresh():
    assert CancellationSignal.never() is not CancellationSignal.never()
