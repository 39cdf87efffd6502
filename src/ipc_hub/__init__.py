"""ipc-hub - request/reply and broadcast hub over a raw message channel.

A coordinator process owns named handlers; worker processes call them and
get exactly one reply per call, correlated by id even with many calls in
flight. The coordinator can also broadcast named events to one or all
workers, where any number of listeners per name receive them.
"""

from .channel import Channel, MemoryChannel, StreamChannel, open_stdio_channel
from .config import HubConfig, ProcessRole
from .context import HubContext
from .coordinator import CoordinatorHub
from .errors import (
    CallTimeout,
    ChannelClosed,
    HandlerFailure,
    HubError,
    InvalidArgument,
    NoHandlerRegistered,
    ProtocolError,
    RemoteCallError,
    UnknownPeer,
    WrongProcessRole,
)
from .hooks import HubHooks
from .ids import IdGenerator
from .protocol import (
    Broadcast,
    Call,
    CallDefinition,
    ErrorInfo,
    EventDefinition,
    Reply,
    define_call,
    define_event,
)
from .worker import PendingCallTable, WorkerHub

__version__ = "0.1.0"

__all__ = [
    # Hubs
    "CoordinatorHub",
    "WorkerHub",
    "HubContext",
    "HubConfig",
    "HubHooks",
    "ProcessRole",
    "PendingCallTable",
    "IdGenerator",
    # Channels
    "Channel",
    "MemoryChannel",
    "StreamChannel",
    "open_stdio_channel",
    # Protocol
    "Call",
    "Reply",
    "Broadcast",
    "ErrorInfo",
    "CallDefinition",
    "EventDefinition",
    "define_call",
    "define_event",
    # Errors
    "HubError",
    "InvalidArgument",
    "ProtocolError",
    "RemoteCallError",
    "NoHandlerRegistered",
    "HandlerFailure",
    "UnknownPeer",
    "CallTimeout",
    "ChannelClosed",
    "WrongProcessRole",
]
