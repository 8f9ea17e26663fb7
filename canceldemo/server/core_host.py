# canceldemo/server/core_host.py
from __future__ import annotations

from fastapi import FastAPI

from canceldemo.app.factory import createApp

__all__ = ["createCoreApp", "app"]



def createCoreApp() -> FastAPI:
    """Minimal host: endpoints take the disconnect signal as a parameter, no middleware."""
    from canceldemo.api.minimal import router as minimalRouter
    return createApp("core", routers=[minimalRouter])


app = createCoreApp()
