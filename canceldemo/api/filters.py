# canceldemo/api/filters.py
from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from fastapi import Depends, Request

from canceldemo.api.signals import PROPERTY_KEY, requestSignal
from canceldemo.core.signal import CancellationSignal

logger = logging.getLogger(__name__)

__all__ = ["cancellationFilter"]



async def cancellationFilter(request: Request, signal: CancellationSignal = Depends(requestSignal)) -> AsyncIterator[None]:
    """
    Router-level dependency run around every API endpoint.

    Copies the request's signal into request.state.properties so endpoints
    without a signal parameter can look it up.
    """
    properties = getattr(request.state, "properties", None)
    if not isinstance(properties, dict):
        properties = {}
        request.state.properties = properties
    properties[PROPERTY_KEY] = signal

    logger.info("Request started: %s", request.url)
    try:
        yield
    finally:
        logger.info("Request completed: %s%s", request.url, " (cancelled)" if signal.fired else "")
