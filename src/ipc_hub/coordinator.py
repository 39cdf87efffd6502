"""Coordinator hub - dispatches worker calls and broadcasts events.

The coordinator owns one handler per call name. Every Call arriving on a
worker's channel gets exactly one Reply on that same channel:
- handler found: run it, reply with its result or its error
- no handler: reply at once with a ``no_handler`` error

Handlers run in their own tasks, so a slow handler never blocks the read
loop and replies can leave in a different order than the calls arrived.

Usage:
    hub = CoordinatorHub()
    hub.on("sum", lambda data: data["a"] + data["b"])

    # The host tells the hub about worker channels
    hub.attach("worker-1", channel)

    await hub.send_to_all("config.changed", {"theme": "dark"})
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

from .channel.base import Channel
from .config import HubConfig, ProcessRole
from .errors import ChannelClosed, InvalidArgument, UnknownPeer
from .hooks import HubHooks
from .protocol.messages import Broadcast, Call, ErrorInfo, Reply, dump_message
from .protocol.schema import CallDefinition, EventDefinition
from .registry import Handler, HandlerRegistry, require_callable, resolve_name

logger = logging.getLogger(__name__)

SOURCE = "ipc-hub coordinator"


def _typed_handler(definition: CallDefinition[Any, Any], handler: Handler) -> Handler:
    """Wrap a handler so it receives validated params and returns a dumped result."""

    async def typed(data: Any) -> Any:
        result = handler(definition.load_params(data))
        if inspect.isawaitable(result):
            result = await result
        return definition.dump_result(result)

    return typed


class CoordinatorHub:
    """Handler registry plus per-peer dispatch for the coordinator process.

    Construct it once per process, normally through ``HubContext.coordinator()``.
    """

    def __init__(self, config: HubConfig | None = None, hooks: HubHooks | None = None) -> None:
        self.config = config or HubConfig(role=ProcessRole.COORDINATOR)
        self.hooks = hooks or HubHooks()
        self._handlers = HandlerRegistry()
        self._peers: dict[str, Channel] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    # =========================================================================
    # Handler registration
    # =========================================================================

    def on(self, name: str | CallDefinition[Any, Any], handler: Handler) -> None:
        """Register ``handler`` for calls named ``name``, replacing any previous one.

        The handler receives the call's payload and may return a value or an
        awaitable. Raising fails the call on the worker with ``HandlerFailure``.

        Raises:
            InvalidArgument: If ``name`` is not a non-empty string or
                ``handler`` is not callable
        """
        wire_name = resolve_name(name, SOURCE)
        require_callable(handler, "handler", SOURCE)
        if isinstance(name, CallDefinition):
            handler = _typed_handler(name, handler)
        self._handlers.set(wire_name, handler)

    def off(self, name: str | CallDefinition[Any, Any]) -> None:
        """Remove the handler for ``name``. No-op if none is registered."""
        wire_name = resolve_name(name, SOURCE)
        if self._handlers.remove(wire_name):
            logger.debug(f"Removed handler for '{wire_name}'")

    @property
    def handlers(self) -> list[str]:
        """Names with a registered handler."""
        return self._handlers.names()

    # =========================================================================
    # Peers
    # =========================================================================

    @property
    def peers(self) -> list[str]:
        """Ids of attached worker peers."""
        return list(self._peers)

    def attach(self, peer_id: str, channel: Channel) -> asyncio.Task[None]:
        """Register a worker's channel and start reading calls from it.

        Returns:
            The read-loop task; it finishes when the channel closes
        """
        self._register_peer(peer_id, channel)
        task = asyncio.create_task(
            self._read_loop(peer_id, channel), name=f"ipc-hub-peer-{peer_id}"
        )
        self._track(task)
        return task

    async def serve(self, peer_id: str, channel: Channel) -> None:
        """Register a worker's channel and read calls until it closes."""
        self._register_peer(peer_id, channel)
        await self._read_loop(peer_id, channel)

    def detach(self, peer_id: str) -> Channel | None:
        """Forget a peer. The channel itself is left open."""
        channel = self._peers.pop(peer_id, None)
        if channel is not None:
            logger.info(f"Detached peer {peer_id}")
        return channel

    @staticmethod
    def _require_peer_id(peer_id: object) -> None:
        if not isinstance(peer_id, str) or not peer_id:
            raise InvalidArgument(f"[{SOURCE}] peer_id must be a non-empty string, got {peer_id!r}")

    def _register_peer(self, peer_id: str, channel: Channel) -> None:
        self._require_peer_id(peer_id)
        if peer_id in self._peers and self._peers[peer_id] is not channel:
            logger.warning(f"Peer {peer_id} re-attached, replacing previous channel")
        self._peers[peer_id] = channel
        logger.info(f"Attached peer {peer_id}")

    async def _read_loop(self, peer_id: str, channel: Channel) -> None:
        try:
            async for message in channel.receive():
                if isinstance(message, Call):
                    self.receive_call(message, channel)
                else:
                    logger.warning(
                        f"Ignoring unexpected {message.kind} '{message.name}' from peer {peer_id}"
                    )
        except Exception:
            logger.exception(f"Read loop for peer {peer_id} failed")
            # Close the channel so the worker fails its pending calls
            await channel.disconnect()
        finally:
            # A newer channel may have been attached under the same id
            if self._peers.get(peer_id) is channel:
                del self._peers[peer_id]
                logger.info(f"Peer {peer_id} disconnected")

    # =========================================================================
    # Inbound calls
    # =========================================================================

    def receive_call(self, call: Call, channel: Channel) -> asyncio.Task[None]:
        """Dispatch one inbound call; its reply is sent back on ``channel``.

        The handler is resolved now, so a later ``off()`` does not affect
        this call.
        """
        self.hooks.fire("on_receive", call)

        handler = self._handlers.get(call.name)
        if handler is None:
            logger.debug(f"No handler for '{call.name}' (id={call.id})")
            reply = Reply.failure(call, ErrorInfo.no_handler(call.name))
            task = asyncio.create_task(self._send_reply(channel, reply))
        else:
            task = asyncio.create_task(self._dispatch(call, handler, channel))

        self._track(task)
        return task

    async def _dispatch(self, call: Call, handler: Handler, channel: Channel) -> None:
        try:
            result = handler(call.data)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.exception(f"Handler for '{call.name}' failed (id={call.id})")
            reply = Reply.failure(call, ErrorInfo.from_exception(e))
        else:
            reply = Reply.success(call, result)
            try:
                dump_message(reply)
            except (TypeError, ValueError) as e:
                logger.error(f"Result of '{call.name}' is not serializable: {e}")
                error = ErrorInfo(
                    message=f"result of '{call.name}' is not serializable: {e}",
                    type=type(e).__name__,
                )
                reply = Reply.failure(call, error)

        await self._send_reply(channel, reply)

    async def _send_reply(self, channel: Channel, reply: Reply) -> None:
        self.hooks.fire("on_reply", reply)
        try:
            await channel.send(reply)
        except ChannelClosed as e:
            logger.warning(f"Dropping reply for '{reply.name}' (id={reply.id}): {e}")

    # =========================================================================
    # Broadcasts
    # =========================================================================

    async def send_to_one(
        self, peer_id: str, name: str | EventDefinition[Any], data: Any = None
    ) -> None:
        """Send a broadcast to a single worker.

        Raises:
            InvalidArgument: If ``peer_id`` or ``name`` is not a non-empty string
            UnknownPeer: If ``peer_id`` is not an attached, connected peer
        """
        self._require_peer_id(peer_id)
        wire_name = resolve_name(name, SOURCE)
        if isinstance(name, EventDefinition):
            data = name.dump(data)
        await self._send_broadcast(peer_id, Broadcast(name=wire_name, data=data))

    async def send_to_all(self, name: str | EventDefinition[Any], data: Any = None) -> list[str]:
        """Send a broadcast to every attached worker.

        A peer whose channel is gone or whose send fails does not stop
        delivery to the others. An unserializable payload raises before any
        peer is sent to.

        Returns:
            Ids of the peers the broadcast could not be delivered to
        """
        wire_name = resolve_name(name, SOURCE)
        if isinstance(name, EventDefinition):
            data = name.dump(data)
        message = Broadcast(name=wire_name, data=data)
        # Unserializable payloads fail the whole call before anything is sent
        dump_message(message)

        failed: list[str] = []
        for peer_id in list(self._peers):
            try:
                await self._send_broadcast(peer_id, message)
            except UnknownPeer as e:
                logger.warning(f"Broadcast '{wire_name}' not delivered: {e}")
                failed.append(peer_id)
            except Exception:
                logger.exception(f"Broadcast '{wire_name}' to peer {peer_id} failed")
                failed.append(peer_id)
        return failed

    async def _send_broadcast(self, peer_id: str, message: Broadcast) -> None:
        channel = self._peers.get(peer_id)
        if channel is None or not channel.is_connected:
            raise UnknownPeer(peer_id)

        self.hooks.fire("on_send", message)
        try:
            await channel.send(message)
        except ChannelClosed as e:
            raise UnknownPeer(peer_id) from e

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        """Cancel read loops and in-flight handlers, and forget all peers."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._peers.clear()
