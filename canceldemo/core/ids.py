# canceldemo/core/ids.py
from __future__ import annotations

import uuid6

__all__ = ["requestId"]



def requestId(side: str = "req") -> str:
    """Short, time-ordered id used to correlate log lines of one request."""
    # Last 12 hex chars are random bits of the UUIDv7
    return f"{side}_{uuid6.uuid7().hex[-12:]}"
