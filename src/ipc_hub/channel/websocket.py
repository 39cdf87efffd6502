"""WebSocket channels.

- WebSocketPeerChannel: coordinator side, wraps one accepted Starlette
  WebSocket (one per connected worker).
- WebSocketWorkerChannel: worker side, connects with the ``websockets``
  client library.

Each WebSocket text frame carries exactly one protocol message as JSON.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from ..errors import ChannelClosed, ProtocolError
from ..protocol.messages import encode_message, parse_message
from .base import Channel, Message

logger = logging.getLogger(__name__)


class WebSocketPeerChannel(Channel):
    """Coordinator-side channel for a single worker's WebSocket."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket
        self._connected = False
        self._send_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected and self._websocket.client_state == WebSocketState.CONNECTED

    async def connect(self) -> None:
        """Accept the WebSocket connection."""
        await self._websocket.accept()
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False
        if self._websocket.client_state == WebSocketState.CONNECTED:
            await self._websocket.close()

    async def send(self, message: Message) -> None:
        async with self._send_lock:
            if not self.is_connected:
                raise ChannelClosed("WebSocket peer is not connected")
            try:
                await self._websocket.send_text(encode_message(message))
            except (WebSocketDisconnect, RuntimeError) as e:
                self._connected = False
                raise ChannelClosed(f"WebSocket send failed: {e}") from e

    async def receive(self) -> AsyncIterator[Message]:
        try:
            while self.is_connected:
                data = await self._websocket.receive_text()
                try:
                    yield parse_message(data)
                except ProtocolError as e:
                    logger.warning(f"Invalid WebSocket message: {e}")
        except WebSocketDisconnect:
            logger.debug("WebSocket peer disconnected")
        finally:
            self._connected = False


class WebSocketWorkerChannel(Channel):
    """Worker-side channel connecting to the coordinator's WebSocket endpoint."""

    def __init__(
        self, url: str, *, ping_interval: float | None = 30, ping_timeout: float | None = 10
    ):
        # Accept http(s) URLs for convenience
        self.url = url.replace("http://", "ws://").replace("https://", "wss://")
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._websocket: Any = None  # websockets client connection
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._websocket is not None

    async def connect(self) -> None:
        import websockets

        try:
            self._websocket = await websockets.connect(
                self.url,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
            )
        except OSError as e:
            raise ChannelClosed(f"Cannot connect to {self.url}: {e}") from e
        self._connected = True
        logger.info(f"Connected to coordinator at {self.url}")

    async def disconnect(self) -> None:
        self._connected = False
        if self._websocket is not None:
            await self._websocket.close()
            self._websocket = None

    async def send(self, message: Message) -> None:
        if not self.is_connected:
            raise ChannelClosed("Not connected")

        import websockets

        try:
            await self._websocket.send(encode_message(message))
        except websockets.ConnectionClosed as e:
            self._connected = False
            raise ChannelClosed(f"WebSocket closed: {e}") from e

    async def receive(self) -> AsyncIterator[Message]:
        import websockets

        if self._websocket is None:
            return
        try:
            async for data in self._websocket:
                try:
                    yield parse_message(data)
                except ProtocolError as e:
                    logger.warning(f"Invalid message from coordinator: {e}")
        except websockets.ConnectionClosed:
            logger.debug("Coordinator closed the WebSocket")
        finally:
            self._connected = False
