# canceldemo/api/minimal.py
from __future__ import annotations

import logging
import random
from datetime import date, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from canceldemo.api.delay import Seconds
from canceldemo.api.models import DelayResult, WeatherForecast
from canceldemo.api.signals import requestAborted
from canceldemo.app.settings import cancelledStatusCode, hostSettings
from canceldemo.core.errors import RequestCancelledError
from canceldemo.core.signal import CancellationSignal, sleepOrCancel

logger = logging.getLogger(__name__)

__all__ = ["router", "SUMMARIES"]

router = APIRouter()

SUMMARIES = ["Freezing", "Bracing", "Chilly", "Cool", "Mild", "Warm", "Balmy", "Hot", "Sweltering", "Scorching"]



@router.get("/delay/{seconds}", name="DelayEndpoint")
async def delayEndpoint(seconds: Seconds, signal: CancellationSignal = Depends(requestAborted)):
    try:
        logger.info("Starting delay of %d seconds...", seconds)
        await sleepOrCancel(seconds, signal)
        logger.info("Completed delay of %d seconds", seconds)
    except RequestCancelledError:
        logger.info("Request was cancelled by the client.")
        return Response(status_code=cancelledStatusCode())

    result = DelayResult.after(seconds, hostSettings("core")["name"])
    return JSONResponse(result.model_dump(exclude_none=True), status_code=200)



@router.get("/weatherforecast", name="GetWeatherForecast")
async def getWeatherForecast(
    signal: CancellationSignal = Depends(requestAborted),
    days: Annotated[int, Query(ge=0, le=30)] = 10,
    stepSeconds: Annotated[float, Query(ge=0)] = 5.0,
):
    """
    Slow forecast: one day every `stepSeconds`.

    Does not answer 499 itself; a cancellation is raised and mapped by the
    app's exception handler.
    """
    forecast: list[WeatherForecast] = []
    today = date.today()
    for day in range(days):
        try:
            await sleepOrCancel(stepSeconds, signal)
        except RequestCancelledError:
            logger.info("Request was cancelled by the client.")
            raise RequestCancelledError("Client cancelled the request")
        forecast.append(WeatherForecast(
            date=today + timedelta(days=day),
            temperatureC=random.randint(-20, 55),
            summary=random.choice(SUMMARIES),
        ))
    signal.raiseIfFired()
    return [item.model_dump(mode="json") for item in forecast]
