"""Exception hierarchy for the hub.

Local errors (bad arguments, unknown peers, wrong process role) are raised
where they happen. Errors produced on the coordinator while handling a call
travel back inside ``Reply.err`` and are rebuilt here as ``RemoteCallError``
subclasses on the worker side.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .protocol.messages import ErrorInfo


class ErrorCode:
    """Codes carried in ``ErrorInfo.code``."""

    NO_HANDLER = "no_handler"
    HANDLER_FAILURE = "handler_failure"
    TIMEOUT = "timeout"
    CHANNEL_CLOSED = "channel_closed"


class HubError(Exception):
    """Base class for all hub errors."""


class InvalidArgument(HubError, TypeError):
    """A public API was called with a bad name, handler or listener."""


class ProtocolError(HubError, ValueError):
    """A message on the channel could not be parsed."""


class UnknownPeer(HubError, LookupError):
    """A broadcast target is not an attached, connected worker."""

    def __init__(self, peer_id: str):
        super().__init__(f"Unknown or disconnected peer: {peer_id}")
        self.peer_id = peer_id


class WrongProcessRole(HubError, RuntimeError):
    """A hub was requested from a process of the other role."""


class ChannelClosed(HubError, ConnectionError):
    """The channel was closed before a message could be delivered."""


class CallTimeout(HubError, TimeoutError):
    """No reply arrived for a call before its deadline."""

    def __init__(self, call_name: str, call_id: str, timeout: float):
        super().__init__(f"Call '{call_name}' (id={call_id}) timed out after {timeout}s")
        self.call_name = call_name
        self.call_id = call_id
        self.timeout = timeout


class RemoteCallError(HubError):
    """A call failed on the coordinator.

    Attributes:
        code: Machine-readable error code (see ``ErrorCode``)
        call_name: Name of the call that failed
        remote_type: Exception class name raised by the remote handler, if any
        details: Optional structured details sent with the error
    """

    code: str = "remote_error"

    def __init__(
        self,
        message: str,
        *,
        call_name: str | None = None,
        code: str | None = None,
        remote_type: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.call_name = call_name
        if code is not None:
            self.code = code
        self.remote_type = remote_type
        self.details = details or {}

    @classmethod
    def from_info(cls, info: ErrorInfo, call_name: str | None = None) -> RemoteCallError:
        """Rebuild the matching exception from a reply's error info."""
        error_cls = _REMOTE_ERRORS.get(info.code, RemoteCallError)
        return error_cls(
            info.message,
            call_name=call_name,
            code=info.code,
            remote_type=info.type,
            details=info.details,
        )


class NoHandlerRegistered(RemoteCallError):
    """The coordinator has no handler for the call's name."""

    code = ErrorCode.NO_HANDLER


class HandlerFailure(RemoteCallError):
    """The coordinator's handler raised while processing the call."""

    code = ErrorCode.HANDLER_FAILURE


_REMOTE_ERRORS: dict[str, type[RemoteCallError]] = {
    ErrorCode.NO_HANDLER: NoHandlerRegistered,
    ErrorCode.HANDLER_FAILURE: HandlerFailure,
}
