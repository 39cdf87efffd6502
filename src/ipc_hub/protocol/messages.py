"""Wire messages exchanged between coordinator and workers.

Three logical directions share one raw channel, told apart by ``kind``:
- ``call``: worker -> coordinator request with an id
- ``reply``: coordinator -> worker, exactly one per call, same id
- ``broadcast``: coordinator -> worker(s), no id, no reply

Example (call and its reply):
    {"kind": "call", "name": "sum", "id": "1_1737111111111", "data": {"a": 2, "b": 3}}
    {"kind": "reply", "name": "sum", "id": "1_1737111111111", "err": null, "data": 5}

Example (failed reply):
    {
        "kind": "reply",
        "name": "sum",
        "id": "2_1737111111112",
        "err": {"message": "no handler registered for 'sum'", "code": "no_handler"},
        "data": null
    }
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import ErrorCode, ProtocolError


class ErrorInfo(BaseModel):
    """Error carried across the process boundary in ``Reply.err``."""

    model_config = ConfigDict(frozen=True)

    message: str
    code: str = ErrorCode.HANDLER_FAILURE
    type: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def no_handler(cls, name: str) -> ErrorInfo:
        return cls(message=f"no handler registered for '{name}'", code=ErrorCode.NO_HANDLER)

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        """Describe a handler exception without losing its message."""
        return cls(
            message=str(exc) or type(exc).__name__,
            code=ErrorCode.HANDLER_FAILURE,
            type=type(exc).__name__,
        )


class Call(BaseModel):
    """A named request from a worker, correlated to its reply by ``id``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["call"] = "call"
    name: str
    id: str
    data: Any = None


class Reply(BaseModel):
    """The single response to a call. ``err`` is set iff the call failed."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["reply"] = "reply"
    name: str
    id: str
    err: ErrorInfo | None = None
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.err is None

    @classmethod
    def success(cls, call: Call, result: Any) -> Reply:
        return cls(name=call.name, id=call.id, data=result)

    @classmethod
    def failure(cls, call: Call, error: ErrorInfo) -> Reply:
        return cls(name=call.name, id=call.id, err=error)


class Broadcast(BaseModel):
    """A named, un-replied event from the coordinator."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["broadcast"] = "broadcast"
    name: str
    data: Any = None


Message = Annotated[Call | Reply | Broadcast, Field(discriminator="kind")]

_message_adapter: TypeAdapter[Call | Reply | Broadcast] = TypeAdapter(Message)


def parse_message(raw: dict[str, Any] | str | bytes) -> Call | Reply | Broadcast:
    """Parse a wire message (dict or JSON text) into its model.

    Raises:
        ProtocolError: If the payload is not a valid message
    """
    try:
        if isinstance(raw, (str, bytes)):
            return _message_adapter.validate_json(raw)
        return _message_adapter.validate_python(raw)
    except ValidationError as e:
        raise ProtocolError(f"Invalid message: {e.error_count()} validation error(s)") from e


def dump_message(message: Call | Reply | Broadcast) -> dict[str, Any]:
    """Dump a message to plain JSON-compatible values."""
    return message.model_dump(mode="json")


def encode_message(message: Call | Reply | Broadcast) -> str:
    """Encode a message as a single line of JSON."""
    return json.dumps(dump_message(message), ensure_ascii=False)
