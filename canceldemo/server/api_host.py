# canceldemo/server/api_host.py
from __future__ import annotations

from fastapi import FastAPI

from canceldemo.app.factory import createApp

__all__ = ["createApiApp", "app"]



def createApiApp() -> FastAPI:
    """Pipeline host: cancellation middleware + filter in front of every route."""
    from canceldemo.api.delay import router as delayRouter
    from canceldemo.api.example import router as exampleRouter
    return createApp("api", routers=[delayRouter, exampleRouter], cancellationMiddleware=True)


app = createApiApp()
