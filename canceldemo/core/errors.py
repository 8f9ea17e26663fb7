# canceldemo/core/errors.py
from __future__ import annotations

__all__ = ["RequestCancelledError", "HostStartupError"]



class RequestCancelledError(Exception):
    """Raised when a wait is aborted because its cancellation signal fired."""
    def __init__(self, reason: str | None = None):
        super().__init__(reason or "Request was cancelled")
        self.reason = reason



class HostStartupError(RuntimeError):
    """Raised when a spawned host never answered its health probe."""
    pass
