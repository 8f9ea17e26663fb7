# canceldemo/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers

from canceldemo.app.settings import settings, settingsBool
from .formatters import DevFormatter, JsonFormatter

__all__ = ["NO_PROPAGATE", "configureLogging"]



# Libraries whose records we format ourselves or not at all
NO_PROPAGATE = [
    "uvicorn.access",
    "httpcore.connection", "httpcore.http11",
]



def configureLogging(*, devMode: bool | None = None, level: int | None = None) -> None:
    """
    Initiate the global logging configuration.

    Dev:
      - Console pretty logs (DEBUG)
    Prod:
      - Console JSON lines (INFO)
    Both:
      - JSON file log with rotation when `logging.file` is set
    """
    if devMode is None:
        devMode = settingsBool("logging.devMode", True)
    rootLevel = level if level is not None else (logging.DEBUG if devMode else logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(rootLevel)

    for name in NO_PROPAGATE:
        logging.getLogger(name).propagate = False

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(rootLevel)
    consoleHandler.setFormatter(DevFormatter() if devMode else JsonFormatter())
    root.addHandler(consoleHandler)

    logFile = settings("logging.file")
    if logFile:
        fileHandler = logging.handlers.RotatingFileHandler(
            str(logFile),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        fileHandler.setLevel(rootLevel)
        fileHandler.setFormatter(JsonFormatter())
        root.addHandler(fileHandler)

    # Per-logger tweaks (reduce noise)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
