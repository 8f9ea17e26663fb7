import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest



@dataclass
class AsgiExchange:
    """What an ASGI app sent back for one scripted request."""
    messages: list[dict[str, Any]] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def starts(self) -> list[dict[str, Any]]:
        return [m for m in self.messages if m["type"] == "http.response.start"]

    @property
    def status(self) -> int | None:
        return self.starts[0]["status"] if self.starts else None

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.messages if m["type"] == "http.response.body")



async def runAsgi(app, path: str, *, disconnectAfter: float | None = None, query: bytes = b"") -> AsgiExchange:
    """
    Drive `app` with one GET. When `disconnectAfter` is set the client goes away
    that many seconds after the request body was read; otherwise it stays.
    """
    exchange = AsgiExchange()
    pending = [{"type": "http.request", "body": b"", "more_body": False}]
    forever = asyncio.Event()

    async def receive():
        if pending:
            return pending.pop(0)
        if disconnectAfter is None:
            await forever.wait()
        await asyncio.sleep(disconnectAfter)
        return {"type": "http.disconnect"}

    async def send(message):
        exchange.messages.append(message)

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": query,
        "headers": [(b"host", b"testserver")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    loop = asyncio.get_running_loop()
    started = loop.time()
    await app(scope, receive, send)
    exchange.elapsed = loop.time() - started
    return exchange



@pytest.fixture
def asgiCall():
    return runAsgi
