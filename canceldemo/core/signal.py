# canceldemo/core/signal.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from canceldemo.core.errors import RequestCancelledError

logger = logging.getLogger(__name__)

__all__ = [
    "SignalState", "CancellationSignal",
    "sleepOrCancel", "sleepThroughCancellation",
]



class SignalState(str, Enum):
    ARMED = "armed"
    FIRED = "fired"



class CancellationSignal:
    """
    One-shot cancellation trigger shared by a caller and everything it calls.

    Starts ARMED and moves to FIRED exactly once, never back. Any number of
    observers may read `fired`, `await wait()` or register `onFire()` callbacks
    without changing it; only the owner is supposed to call `fire()`.

    Not thread-safe: fire it from the event loop thread (use
    `loop.call_soon_threadsafe(signal.fire)` from anywhere else).
    """
    def __init__(self, *, name: str = "") -> None:
        self.name = name
        self._state = SignalState.ARMED
        self._reason: str | None = None
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[CancellationSignal], None]] = []

    def __repr__(self) -> str:
        return f"<CancellationSignal {self.name or '?'} {self._state.value}>"

    # ----- Construction helpers -----

    @classmethod
    def never(cls) -> CancellationSignal:
        """A signal nobody owns, so it never fires."""
        return cls(name="never")

    @classmethod
    def linked(cls, *parents: CancellationSignal, name: str = "linked") -> CancellationSignal:
        """
        Returns a new signal that fires as soon as any of `parents` fires.

        The child can still be fired on its own; that never touches the parents.
        """
        child = cls(name=name)
        for parent in parents:
            parent.onFire(lambda source: child.fire(source.reason))
        return child

    # ----- State -----

    @property
    def state(self) -> SignalState:
        return self._state

    @property
    def fired(self) -> bool:
        return self._state is SignalState.FIRED

    @property
    def reason(self) -> str | None:
        return self._reason

    # ----- Owner side -----

    def fire(self, reason: str | None = None) -> bool:
        """
        Move to FIRED and wake every observer.

        Returns True on the transition, False when the signal had already fired.
        Firing twice is harmless.
        """
        if self._state is SignalState.FIRED:
            return False
        self._state = SignalState.FIRED
        self._reason = reason or "cancelled"
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("Cancellation callback failed on signal '%s'", self.name)
        return True

    def fireAfter(self, seconds: float, reason: str | None = None) -> asyncio.TimerHandle:
        """Timeout trigger. Cancel the returned handle to disarm it."""
        loop = asyncio.get_running_loop()
        return loop.call_later(
            max(0.0, seconds),
            self.fire,
            reason or f"timeout after {seconds:g}s",
        )

    # ----- Observer side -----

    def onFire(self, callback: Callable[[CancellationSignal], None]) -> Callable[[], None]:
        """
        Register `callback(signal)` to run once when the signal fires.

        Runs immediately when already fired. Returns an unsubscribe function.
        """
        if self.fired:
            callback(self)
            return lambda: None
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass
        return unsubscribe

    async def wait(self) -> None:
        await self._event.wait()

    def raiseIfFired(self) -> None:
        if self.fired:
            raise RequestCancelledError(self._reason)



async def sleepOrCancel(seconds: float, signal: CancellationSignal | None = None) -> None:
    """
    Sleep `seconds`, waking early when `signal` fires.

    Raises RequestCancelledError if the signal fired before the sleep elapsed.
    The sleep is a real suspension point: a fire() wakes it on the next loop tick.
    """
    if signal is None:
        await asyncio.sleep(max(0.0, seconds))
        return
    signal.raiseIfFired()
    if seconds <= 0:
        await asyncio.sleep(0)
        return

    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait({waiter}, timeout=seconds)
    finally:
        if not waiter.done():
            waiter.cancel()
    if waiter in done:
        raise RequestCancelledError(signal.reason)



async def sleepThroughCancellation(seconds: float) -> None:
    """
    Sleep which, once started, always runs its full length.

    If the task is cancelled mid-sleep the sleep still finishes, then the
    cancellation is re-raised. Used by handlers that do not check any signal.
    """
    step = asyncio.ensure_future(asyncio.sleep(max(0.0, seconds)))
    try:
        await asyncio.shield(step)
    except asyncio.CancelledError:
        await step
        raise
