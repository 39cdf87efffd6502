"""Raw channels between the coordinator and its workers.

The hubs only rely on the ``Channel`` interface; these implementations
let them run in-process, over pipes, or over WebSocket.
"""

from .base import Channel
from .memory import MemoryChannel
from .stream import StreamChannel, open_stdio_channel

# Note: websocket channels import starlette, use:
# from ipc_hub.channel.websocket import WebSocketPeerChannel, WebSocketWorkerChannel

__all__ = [
    "Channel",
    "MemoryChannel",
    "StreamChannel",
    "open_stdio_channel",
]
