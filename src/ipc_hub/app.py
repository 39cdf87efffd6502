"""Coordinator ASGI application.

Exposes a coordinator hub to workers over WebSocket:
- /health - hub status (attached peers, registered handlers)
- /ws/{peer_id} - one worker connection; attached as a peer for its lifetime
"""

from __future__ import annotations

import logging

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from .channel.websocket import WebSocketPeerChannel
from .coordinator import CoordinatorHub

logger = logging.getLogger(__name__)


def create_app(hub: CoordinatorHub) -> Starlette:
    """Create the coordinator application around ``hub``.

    Args:
        hub: The process's coordinator hub (handlers registered by the host)

    Returns:
        Configured Starlette application
    """

    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "peers": hub.peers,
                "handlers": hub.handlers,
            }
        )

    async def worker_endpoint(websocket: WebSocket) -> None:
        peer_id = websocket.path_params["peer_id"]
        if peer_id in hub.peers:
            await websocket.close(code=4009, reason=f"Peer {peer_id} already connected")
            return

        channel = WebSocketPeerChannel(websocket)
        await channel.connect()
        logger.info(f"Worker {peer_id} connected")
        try:
            await hub.serve(peer_id, channel)
        finally:
            await channel.disconnect()
            logger.info(f"Worker {peer_id} disconnected")

    routes = [
        Route("/health", health_check, methods=["GET"]),
        WebSocketRoute("/ws/{peer_id}", worker_endpoint),
    ]

    app = Starlette(routes=routes)
    app.state.hub = hub
    return app
