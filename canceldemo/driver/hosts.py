# canceldemo/driver/hosts.py
from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import httpx
import psutil

from canceldemo.app.settings import hostSettings, settings
from canceldemo.core.errors import HostStartupError
from canceldemo.core.time import elapsedMs, nowMonotonicMs

logger = logging.getLogger(__name__)

__all__ = ["HostProcess", "killProcessTree", "runningHosts"]



def killProcessTree(proc: psutil.Process, *, graceSeconds: float = 3.0) -> None:
    """Terminate `proc` and its children, killing whatever outlives the grace period."""
    try:
        procs = proc.children(recursive=True) + [proc]
    except psutil.NoSuchProcess:
        return
    for child in procs:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass
    _, alive = psutil.wait_procs(procs, timeout=graceSeconds)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass



@dataclass
class HostProcess:
    """One host ("core" or "api") running as `python -m canceldemo serve <key>`."""
    key: str
    port: int | None = None
    extraArgs: list[str] = field(default_factory=list)
    process: psutil.Popen | None = None

    def __post_init__(self) -> None:
        if self.port is None:
            self.port = int(hostSettings(self.key)["port"])

    @property
    def name(self) -> str:
        return str(hostSettings(self.key)["name"])

    @property
    def baseUrl(self) -> str:
        host = hostSettings(self.key).get("host", "127.0.0.1")
        return f"http://{host}:{self.port}"

    def command(self) -> list[str]:
        return [sys.executable, "-m", "canceldemo", "serve", self.key, "--port", str(self.port), *self.extraArgs]

    def start(self) -> None:
        if self.process is not None and self.process.is_running():
            logger.info("%s already running (PID %d)", self.name, self.process.pid)
            return
        cmd = self.command()
        logger.info("Starting %s: %s", self.name, " ".join(cmd))
        self.process = psutil.Popen(cmd)
        logger.info("%s PID: %d", self.name, self.process.pid)

    async def waitUntilReady(self, *, timeoutMs: int | None = None, pollMs: int | None = None) -> None:
        """Poll /health until it answers 200; raise HostStartupError otherwise."""
        if timeoutMs is None:
            timeoutMs = int(settings("driver.readyTimeoutMs", 30_000))
        if pollMs is None:
            pollMs = int(settings("driver.readyPollMs", 250))
        healthUrl = f"{self.baseUrl}/health"
        startedMs = nowMonotonicMs()
        lastError = "no answer"
        async with httpx.AsyncClient(timeout=httpx.Timeout(max(pollMs, 1_000) / 1_000)) as client:
            while elapsedMs(startedMs) < timeoutMs:
                if self.process is not None and self.process.poll() is not None:
                    raise HostStartupError(f"{self.name} exited before becoming ready")
                try:
                    resp = await client.get(healthUrl)
                    if resp.status_code == 200:
                        logger.info("%s ready after %d ms", self.name, elapsedMs(startedMs))
                        return
                    lastError = f"HTTP {resp.status_code}"
                except httpx.TransportError as err:
                    lastError = f"{type(err).__name__}: {err}"
                await asyncio.sleep(pollMs / 1_000)
        raise HostStartupError(f"{self.name} not ready after {timeoutMs} ms ({lastError})")

    def stop(self) -> None:
        if self.process is None:
            return
        logger.info("Stopping %s PID %d and its children...", self.name, self.process.pid)
        killProcessTree(self.process)
        self.process = None



@asynccontextmanager
async def runningHosts(keys: Sequence[str] = ("core", "api")) -> AsyncIterator[dict[str, HostProcess]]:
    """Start every host, wait until all are healthy, stop them on exit."""
    hosts = {key: HostProcess(key) for key in keys}
    try:
        for host in hosts.values():
            host.start()
        await asyncio.gather(*(host.waitUntilReady() for host in hosts.values()))
        yield hosts
    finally:
        for host in hosts.values():
            try:
                host.stop()
            except Exception:
                logger.exception("Error stopping %s", host.name)
