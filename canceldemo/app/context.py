# canceldemo/app/context.py
from __future__ import annotations

import contextvars
from dataclasses import dataclass

from canceldemo.core.signal import CancellationSignal

__all__ = [
    "ConnectionContext", "bindConnection", "resetConnection",
    "currentConnection", "currentConnectionSignal",
]



@dataclass(slots=True)
class ConnectionContext:
    """
    Ambient, per-connection environment.

    Bound by the cancellation middleware for the lifetime of one HTTP request.
    """
    id: str
    path: str
    signal: CancellationSignal



_connectionVar: contextvars.ContextVar[ConnectionContext | None] = contextvars.ContextVar(
    "canceldemo.connection", default=None
)



def bindConnection(connection: ConnectionContext) -> contextvars.Token:
    return _connectionVar.set(connection)



def resetConnection(token: contextvars.Token) -> None:
    _connectionVar.reset(token)



def currentConnection() -> ConnectionContext | None:
    return _connectionVar.get()



def currentConnectionSignal() -> CancellationSignal | None:
    """Signal of the connection being served by the current task, if any."""
    connection = _connectionVar.get()
    return connection.signal if connection is not None else None
