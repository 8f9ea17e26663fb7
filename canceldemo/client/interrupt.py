# canceldemo/client/interrupt.py
from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager

from canceldemo.core.signal import CancellationSignal

logger = logging.getLogger(__name__)

__all__ = ["interruptTrigger"]



@contextmanager
def interruptTrigger(trigger: CancellationSignal, *, loop: asyncio.AbstractEventLoop | None = None) -> Iterator[CancellationSignal]:
    """
    Route Ctrl+C (SIGINT) to `trigger` while the block runs.

    The first interrupt fires the trigger instead of killing the process, so
    in-flight requests see it and unwind. Later interrupts are only logged.
    The previous handler is restored on exit.
    """
    loop = loop or asyncio.get_running_loop()

    def onInterrupt() -> None:
        if trigger.fire("interrupted by user"):
            logger.warning("Ctrl+C pressed. Cancelling ongoing requests...")
        else:
            logger.warning("Ctrl+C pressed again, still waiting for requests to unwind...")

    previous = None
    try:
        loop.add_signal_handler(signal.SIGINT, onInterrupt)
        viaLoop = True
    except NotImplementedError:
        # Windows event loops: plain handler, hop onto the loop thread
        previous = signal.signal(signal.SIGINT, lambda signum, frame: loop.call_soon_threadsafe(onInterrupt))
        viaLoop = False
    try:
        yield trigger
    finally:
        if viaLoop:
            loop.remove_signal_handler(signal.SIGINT)
        else:
            signal.signal(signal.SIGINT, previous)
