# canceldemo/cli.py
from __future__ import annotations

import asyncio
import json
import logging
from typing import Annotated, Optional

import typer

from canceldemo.app.settings import hostSettings
from canceldemo.core.logging import configureLogging

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Cancellation propagation through HTTP pipelines.")

HOST_APPS = {
    "core": "canceldemo.server.core_host:app",
    "api": "canceldemo.server.api_host:app",
}

CancelAfterOption = Annotated[
    Optional[int],
    typer.Option("--cancel-after", "-c", help="Fire the cancellation trigger after this many ms"),
]



@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    configureLogging(level=logging.DEBUG if verbose else None)



@app.command()
def serve(
    host: Annotated[str, typer.Argument(help="Which host to run: core or api")],
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Override the configured port")] = None,
) -> None:
    """Run one host with uvicorn."""
    import uvicorn

    if host not in HOST_APPS:
        logger.error("Unknown host '%s' (expected one of: %s)", host, ", ".join(HOST_APPS))
        raise typer.Exit(2)
    cfg = hostSettings(host)
    bindPort = port or int(cfg["port"])
    logger.info("%s running at http://%s:%d/", cfg["name"], cfg["host"], bindPort)
    # log_config=None keeps the logging configured above
    uvicorn.run(HOST_APPS[host], host=str(cfg["host"]), port=bindPort, log_config=None)



@app.command()
def call(
    url: Annotated[str, typer.Argument(help="URL to GET")],
    cancelAfter: CancelAfterOption = None,
) -> None:
    """Single request; Ctrl+C cancels it."""
    from canceldemo.client.console import callOnce, exitCodeFor

    outcome = asyncio.run(callOnce(url, cancelAfterMs=cancelAfter))
    if outcome.isCompleted:
        typer.echo(outcome.payload if isinstance(outcome.payload, str) else json.dumps(outcome.payload))
    raise typer.Exit(exitCodeFor(outcome.kind))



@app.command()
def parallel(
    urls: Annotated[list[str], typer.Argument(help="URLs to GET concurrently")],
    cancelAfter: CancelAfterOption = None,
) -> None:
    """Concurrent requests sharing one cancellation trigger."""
    from canceldemo.client.console import callParallel, exitCodeFor

    aggregate = asyncio.run(callParallel(urls, cancelAfterMs=cancelAfter))
    for part in aggregate.parts:
        typer.echo(f"{part.url}: {part.describe()}")
    raise typer.Exit(exitCodeFor(aggregate.kind))



@app.command()
def loop(
    url: Annotated[str, typer.Argument(help="Long-running URL to call repeatedly")],
    maxRequests: Annotated[Optional[int], typer.Option("--max", help="Stop after this many requests")] = None,
) -> None:
    """Call an endpoint over and over until Ctrl+C cancels the in-flight request."""
    from canceldemo.client.console import runConsoleLoop

    outcomes = asyncio.run(runConsoleLoop(url, maxRequests=maxRequests))
    failed = [outcome for outcome in outcomes if outcome.isFailed]
    raise typer.Exit(1 if failed and len(failed) == len(outcomes) else 0)



@app.command()
def integration(
    spawn: Annotated[bool, typer.Option("--spawn/--no-spawn", help="Start both hosts before running")] = True,
) -> None:
    """Run every scenario; exit code 0 only when all passed."""
    from canceldemo.driver.runner import runIntegration

    raise typer.Exit(asyncio.run(runIntegration(spawnHosts=spawn)))



def cli() -> None:
    app(prog_name="canceldemo")


if __name__ == "__main__":
    cli()
