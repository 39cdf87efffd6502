"""Wire protocol for the hub.

Defines the three message kinds that share a raw channel:
- Call: worker -> coordinator request carrying an id
- Reply: coordinator -> worker response echoing the call's id
- Broadcast: coordinator -> worker event, no id and no reply

Correlation is by id only. Replies can arrive in any order relative to
the calls that produced them.
"""

from .messages import (
    Broadcast,
    Call,
    ErrorInfo,
    Message,
    Reply,
    dump_message,
    encode_message,
    parse_message,
)
from .schema import CallDefinition, EventDefinition, define_call, define_event

__all__ = [
    "Broadcast",
    "Call",
    "ErrorInfo",
    "Message",
    "Reply",
    "dump_message",
    "encode_message",
    "parse_message",
    "CallDefinition",
    "EventDefinition",
    "define_call",
    "define_event",
]
