"""ipc-hub CLI.

Usage:
    ipc-hub serve                             # Coordinator on 127.0.0.1:4097
    ipc-hub serve --handlers myapp.handlers   # Register handlers from a module
    ipc-hub health                            # Check a running coordinator
    ipc-hub demo                              # In-process call/broadcast walkthrough
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import sys

import click
import httpx

from .channel.memory import MemoryChannel
from .config import HubConfig, ProcessRole
from .context import HubContext
from .coordinator import CoordinatorHub
from .errors import RemoteCallError
from .worker import WorkerHub

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(level: str) -> None:
    """Log to stderr; stdout may be carrying a stdio channel."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (default: IPC_HUB_LOG_LEVEL or WARNING)",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """ipc-hub - request/reply and broadcast hub for coordinator/worker processes."""
    config = HubConfig.from_env()
    if log_level:
        config.log_level = log_level.upper()
    setup_logging(config.log_level)
    ctx.obj = config


# =============================================================================
# serve
# =============================================================================


@main.command()
@click.option("--host", default=None, help="Host to bind to (default: IPC_HUB_HOST or 127.0.0.1)")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (default: IPC_HUB_PORT or 4097)"
)
@click.option(
    "--handlers",
    "handlers_module",
    default=None,
    help="Python module with a setup_handlers(hub) function (e.g., myapp.handlers)",
)
@click.pass_obj
def serve(
    config: HubConfig, host: str | None, port: int | None, handlers_module: str | None
) -> None:
    """Run the coordinator, accepting workers on /ws/{peer_id}."""
    import uvicorn

    from .app import create_app

    if host:
        config.host = host
    if port:
        config.port = port

    context = HubContext(ProcessRole.COORDINATOR, config)
    hub = context.coordinator()

    if handlers_module:
        _load_handlers(hub, handlers_module)

    click.echo(
        f"Starting ipc-hub coordinator on ws://{config.host}:{config.port}/ws/<peer_id>", err=True
    )
    click.echo(f"Handlers: {', '.join(hub.handlers) or '(none)'}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(create_app(hub), host=config.host, port=config.port)


def _load_handlers(hub: CoordinatorHub, module_name: str) -> None:
    """Import ``module_name`` and let its setup_handlers() register on ``hub``."""
    click.echo(f"Loading handlers from module {module_name}", err=True)

    try:
        mod = importlib.import_module(module_name)
    except ImportError as e:
        click.echo(f"Failed to import module {module_name}: {e}", err=True)
        sys.exit(1)

    setup_fn = getattr(mod, "setup_handlers", None)
    if setup_fn is None:
        click.echo(f"Module {module_name} has no setup_handlers(hub) function", err=True)
        sys.exit(1)

    try:
        if inspect.iscoroutinefunction(setup_fn):
            asyncio.run(setup_fn(hub))
        else:
            setup_fn(hub)
    except Exception as e:
        click.echo(f"Error loading handlers from {module_name}: {e}", err=True)
        sys.exit(1)


# =============================================================================
# health
# =============================================================================


@main.command()
@click.option("--url", default=None, help="Coordinator URL (default: from IPC_HUB_HOST/PORT)")
@click.pass_obj
def health(config: HubConfig, url: str | None) -> None:
    """Check that a coordinator is up and list its peers."""
    url = url or f"http://{config.host}:{config.port}"

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
        except httpx.ConnectError:
            click.echo(f"Cannot connect to coordinator at {url}", err=True)
            sys.exit(1)

        if response.status_code != 200:
            click.echo(f"Coordinator returned {response.status_code}", err=True)
            sys.exit(1)

        data = response.json()
        click.echo(f"Coordinator is healthy: {len(data.get('peers', []))} peer(s)")
        for peer in data.get("peers", []):
            click.echo(f"  peer: {peer}")
        for name in data.get("handlers", []):
            click.echo(f"  handler: {name}")

    asyncio.run(check())


# =============================================================================
# demo
# =============================================================================


@main.command()
@click.option("--timeout", type=float, default=5.0, help="Per-call timeout in seconds")
@click.pass_obj
def demo(config: HubConfig, timeout: float) -> None:
    """Run a coordinator and a worker in-process and exchange messages."""
    asyncio.run(run_demo(timeout))


async def run_demo(timeout: float = 5.0) -> None:
    coordinator_side, worker_side = MemoryChannel.pair("demo")

    coordinator = CoordinatorHub()
    coordinator.on("sum", lambda data: data["a"] + data["b"])
    coordinator.attach("demo-worker", coordinator_side)

    worker = WorkerHub(worker_side)
    worker.on("greeting", lambda data: click.echo(f"worker received broadcast 'greeting': {data}"))

    async with worker:
        result = await worker.call("sum", {"a": 2, "b": 3}, timeout=timeout)
        click.echo(f"sum(2, 3) -> {result}")

        await coordinator.send_to_all("greeting", {"text": "hello workers"})
        # Let the worker's read loop pick up the broadcast
        await asyncio.sleep(0.05)

        coordinator.off("sum")
        try:
            await worker.call("sum", {"a": 2, "b": 3}, timeout=timeout)
        except RemoteCallError as e:
            click.echo(f"sum after off() -> {type(e).__name__}: {e}")

    await worker_side.disconnect()
    await coordinator.close()


if __name__ == "__main__":
    main()
