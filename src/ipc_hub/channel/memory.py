"""In-process channel pair.

Messages are dumped to JSON-mode dicts on send and parsed again on
receive, so payloads behave as if they had crossed a process boundary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from ..errors import ChannelClosed, ProtocolError
from ..protocol.messages import dump_message, parse_message
from .base import Channel, Message

logger = logging.getLogger(__name__)

_CLOSED = None


class MemoryChannel(Channel):
    """One end of a linked in-memory channel. Create with ``MemoryChannel.pair()``."""

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._inbox: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._peer: MemoryChannel | None = None
        self._connected = True
        self.sent: list[Message] = []

    @classmethod
    def pair(cls, name: str = "memory") -> tuple[MemoryChannel, MemoryChannel]:
        """Create two linked ends: (coordinator side, worker side)."""
        left = cls(f"{name}:coordinator")
        right = cls(f"{name}:worker")
        left._peer = right
        right._peer = left
        return left, right

    @property
    def is_connected(self) -> bool:
        return self._connected and self._peer is not None and self._peer._connected

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        """Close both ends; both receive loops finish."""
        if not self._connected:
            return
        self._connected = False
        self._inbox.put_nowait(_CLOSED)
        if self._peer is not None and self._peer._connected:
            await self._peer.disconnect()

    async def send(self, message: Message) -> None:
        if not self.is_connected or self._peer is None:
            raise ChannelClosed(f"{self.name} is closed")
        raw = dump_message(message)
        self.sent.append(message)
        self._peer._inbox.put_nowait(raw)

    async def receive(self) -> AsyncIterator[Message]:
        while True:
            raw = await self._inbox.get()
            if raw is _CLOSED:
                break
            try:
                yield parse_message(raw)
            except ProtocolError as e:
                logger.warning(f"{self.name}: dropping invalid message: {e}")
