# canceldemo/app/lifecycle.py
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)



@asynccontextmanager
async def life(app: FastAPI) -> AsyncIterator[None]:
    # --------------- Startup ---------------
    serverName = getattr(app.state, "serverName", app.title)
    logger.info("%s started with %d routes", serverName, len(app.routes))
    yield

    # --------------- Shutdown ---------------
    logger.info("%s stopping", serverName)
