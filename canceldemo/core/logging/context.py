# canceldemo/core/logging/context.py
from __future__ import annotations
import contextvars

# Per-request log context. Filled by the cancellation middleware and the client.
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("canceldemo.logctx", default=None)

def setLogContext(**kvs) -> contextvars.Token:
    """Set or update per-log context values (requestId, path, host, etc.). Returns a token for resetLogContext."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    return _logContextVar.set(current)

def resetLogContext(token: contextvars.Token):
    """Restore the context that was active before the matching setLogContext."""
    _logContextVar.reset(token)

def clearLogContext():
    """Clear context after a request is fully handled."""
    _logContextVar.set(None)

def getLogContext():
    """Return current context dict or None."""
    return _logContextVar.get()
