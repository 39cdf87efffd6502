"""Raw channel abstraction.

A channel is one bidirectional, fire-and-forget pipe between the
coordinator and a single worker. It moves protocol messages and nothing
else: no correlation, no dispatch by name. The hubs add those on top.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from ..protocol.messages import Broadcast, Call, Reply

Message = Call | Reply | Broadcast


class Channel(ABC):
    """Abstract bidirectional message channel.

    Implementations:
    - MemoryChannel: linked in-process pair (tests, embedding)
    - StreamChannel: JSON lines over asyncio streams (stdio, pipes, sockets)
    - WebSocketPeerChannel / WebSocketWorkerChannel: WebSocket connection
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if messages can currently be sent."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Establish the channel."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the channel. Pending ``receive()`` iterators finish."""
        ...

    @abstractmethod
    async def send(self, message: Message) -> None:
        """Send one message.

        Raises:
            ChannelClosed: If the channel is not connected
        """
        ...

    @abstractmethod
    def receive(self) -> AsyncIterator[Message]:
        """Yield inbound messages until the channel closes."""
        ...

    async def __aenter__(self) -> Channel:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
