"""Worker hub - correlated calls to the coordinator and broadcast listeners.

Every call gets a fresh id and a pending entry holding a future. The reply
carrying the same id settles that future exactly once; replies for ids the
worker no longer tracks (timed out, cancelled) are discarded.

Usage:
    hub = WorkerHub(channel)
    hub.on("config.changed", lambda data: apply(data))

    async with hub:
        total = await hub.call("sum", {"a": 2, "b": 3})
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .channel.base import Channel
from .config import HubConfig, ProcessRole
from .errors import CallTimeout, ChannelClosed, HubError, RemoteCallError
from .hooks import HubHooks
from .ids import IdGenerator
from .protocol.messages import Broadcast, Call, Reply
from .protocol.schema import CallDefinition, EventDefinition
from .registry import Listener, ListenerRegistry, require_callable, resolve_name

logger = logging.getLogger(__name__)

SOURCE = "ipc-hub worker"

# Sentinel: use HubConfig.call_timeout
_DEFAULT_TIMEOUT: Any = object()


# =============================================================================
# Pending-call table
# =============================================================================


@dataclass
class PendingCall:
    """A call waiting for its reply."""

    name: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None


class PendingCallTable:
    """In-flight calls keyed by id.

    Each entry is removed before its future is settled, so a second reply
    (or a reply after the deadline) finds nothing and is ignored.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingCall] = {}

    def add(
        self,
        call_id: str,
        name: str,
        future: asyncio.Future[Any],
        timeout: float | None = None,
    ) -> PendingCall:
        """Track a call. With ``timeout`` the call fails with CallTimeout on expiry.

        Raises:
            HubError: If ``call_id`` is already pending
        """
        if call_id in self._entries:
            raise HubError(f"Call id {call_id} is already pending")

        entry = PendingCall(name=name, future=future)
        if timeout is not None:
            entry.timer = future.get_loop().call_later(timeout, self._expire, call_id, timeout)
        self._entries[call_id] = entry
        return entry

    def pop(self, call_id: str) -> PendingCall | None:
        """Remove and return an entry, cancelling its deadline."""
        entry = self._entries.pop(call_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()
        return entry

    def settle(self, reply: Reply) -> bool:
        """Settle the call matching ``reply.id``.

        Returns:
            False if no call with that id is pending
        """
        entry = self.pop(reply.id)
        if entry is None or entry.future.done():
            return False

        if reply.err is None:
            entry.future.set_result(reply.data)
        else:
            entry.future.set_exception(RemoteCallError.from_info(reply.err, call_name=reply.name))
        return True

    def fail_all(self, make_error: Callable[[str, PendingCall], BaseException]) -> int:
        """Fail every pending call. Returns how many were failed."""
        failed = 0
        for call_id in list(self._entries):
            entry = self.pop(call_id)
            if entry is not None and not entry.future.done():
                entry.future.set_exception(make_error(call_id, entry))
                failed += 1
        return failed

    def _expire(self, call_id: str, timeout: float) -> None:
        entry = self._entries.pop(call_id, None)
        if entry is None or entry.future.done():
            return
        logger.warning(f"Call '{entry.name}' (id={call_id}) timed out after {timeout}s")
        entry.future.set_exception(CallTimeout(entry.name, call_id, timeout))

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Worker hub
# =============================================================================


class _TypedListener:
    """Listener wrapper that validates payloads against an EventDefinition.

    Compares equal to the wrapped listener so ``off(name, listener)`` finds it.
    """

    def __init__(self, definition: EventDefinition[Any], listener: Listener):
        self.definition = definition
        self.listener = listener

    def __call__(self, data: Any) -> Any:
        return self.listener(self.definition.load(data))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _TypedListener):
            return self.listener == other.listener
        return self.listener == other

    def __hash__(self) -> int:
        return hash(self.listener)


class WorkerHub:
    """Issues correlated calls over a channel and fans out broadcasts.

    Construct it once per process, normally through ``HubContext.worker()``.
    The read loop starts on ``start()``, on ``async with``, or lazily on the
    first ``call()``.
    """

    def __init__(
        self,
        channel: Channel,
        config: HubConfig | None = None,
        hooks: HubHooks | None = None,
        ids: IdGenerator | None = None,
    ) -> None:
        self.config = config or HubConfig(role=ProcessRole.WORKER)
        self.hooks = hooks or HubHooks()
        self._channel = channel
        self._ids = ids or IdGenerator()
        self._listeners = ListenerRegistry()
        self._pending = PendingCallTable()
        self._reader_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def channel(self) -> Channel:
        return self._channel

    @property
    def pending_count(self) -> int:
        """Number of calls still waiting for a reply."""
        return len(self._pending)

    # =========================================================================
    # Listener registration
    # =========================================================================

    def on(self, name: str | EventDefinition[Any], listener: Listener) -> None:
        """Add ``listener`` for broadcasts named ``name``.

        Several listeners per name are allowed; they run in registration order.

        Raises:
            InvalidArgument: If ``name`` is not a non-empty string or
                ``listener`` is not callable
        """
        wire_name = resolve_name(name, SOURCE)
        require_callable(listener, "listener", SOURCE)
        if isinstance(name, EventDefinition):
            listener = _TypedListener(name, listener)
        self._listeners.add(wire_name, listener)

    def off(self, name: str | EventDefinition[Any], listener: Listener | None = None) -> None:
        """Remove all listeners for ``name``, or only the first occurrence of ``listener``."""
        wire_name = resolve_name(name, SOURCE)
        if listener is not None:
            require_callable(listener, "listener", SOURCE)
        self._listeners.remove(wire_name, listener)

    # =========================================================================
    # Calls
    # =========================================================================

    async def call(
        self,
        name: str | CallDefinition[Any, Any],
        data: Any = None,
        *,
        timeout: float | None = _DEFAULT_TIMEOUT,
    ) -> Any:
        """Call the coordinator's handler for ``name`` and return its result.

        Args:
            name: Call name, or a CallDefinition for validated params/result
            data: Payload passed to the handler
            timeout: Seconds to wait for the reply; None waits forever.
                Defaults to ``HubConfig.call_timeout``.

        Raises:
            InvalidArgument: If ``name`` is not a non-empty string
            NoHandlerRegistered: If the coordinator has no handler for ``name``
            HandlerFailure: If the handler raised
            CallTimeout: If no reply arrived in time
            ChannelClosed: If the channel is closed before the reply arrives
        """
        wire_name = resolve_name(name, SOURCE)
        definition = name if isinstance(name, CallDefinition) else None
        if definition is not None:
            data = definition.dump_params(data)
        if timeout is _DEFAULT_TIMEOUT:
            timeout = self.config.call_timeout

        self.start()

        call_id = self._ids.next()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending.add(call_id, wire_name, future, timeout)

        message = Call(name=wire_name, id=call_id, data=data)
        self.hooks.fire("on_send", message)
        try:
            await self._channel.send(message)
        except BaseException:
            self._pending.pop(call_id)
            raise

        try:
            result = await future
        finally:
            # No-op once settled; drops the entry if the caller was cancelled
            self._pending.pop(call_id)

        if definition is not None:
            return definition.load_result(result)
        return result

    # =========================================================================
    # Inbound messages
    # =========================================================================

    def _handle_reply(self, reply: Reply) -> None:
        self.hooks.fire("on_reply", reply)
        if not self._pending.settle(reply):
            level = logging.WARNING if self.config.log_discarded_replies else logging.DEBUG
            logger.log(level, f"Discarding reply for unknown call id {reply.id} ('{reply.name}')")

    def _handle_broadcast(self, broadcast: Broadcast) -> None:
        self.hooks.fire("on_receive", broadcast)

        for listener in self._listeners.snapshot(broadcast.name):
            try:
                result = listener(broadcast.data)
            except Exception:
                logger.exception(f"Listener for '{broadcast.name}' failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                task.add_done_callback(self._log_listener_failure)
                self._track(task)

    @staticmethod
    def _log_listener_failure(task: asyncio.Future[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async listener failed", exc_info=exc)

    async def _read_loop(self) -> None:
        try:
            async for message in self._channel.receive():
                if isinstance(message, Reply):
                    self._handle_reply(message)
                elif isinstance(message, Broadcast):
                    self._handle_broadcast(message)
                else:
                    logger.warning(f"Ignoring unexpected {message.kind} '{message.name}'")
        except Exception:
            logger.exception("Worker read loop failed")
        finally:
            failed = self._pending.fail_all(
                lambda call_id, entry: ChannelClosed(
                    f"Channel closed before reply to '{entry.name}' (id={call_id})"
                )
            )
            if failed:
                logger.warning(f"Channel closed with {failed} pending call(s)")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _track(self, task: asyncio.Future[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def start(self) -> None:
        """Start reading replies and broadcasts from the channel. Idempotent."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop(), name="ipc-hub-worker-reader")

    async def stop(self) -> None:
        """Stop the read loop; pending calls fail with ChannelClosed."""
        if self._reader_task is not None:
            self._reader_task.cancel()
            await asyncio.gather(self._reader_task, return_exceptions=True)
            self._reader_task = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> WorkerHub:
        self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()
