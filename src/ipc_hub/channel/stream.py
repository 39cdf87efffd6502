"""Newline-delimited JSON channel over asyncio streams.

Works over anything asyncio exposes as a StreamReader/StreamWriter pair:
a subprocess's pipes, the current process's stdin/stdout, or a socket.

Wire format:
    {"kind": "call", "name": "sum", "id": "1_1737111111111", "data": {"a": 2}}\\n
    {"kind": "reply", "name": "sum", "id": "1_1737111111111", "err": null, "data": 2}\\n

Lines that do not start with ``{`` (e.g. log output that leaked onto the
pipe) are skipped.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncIterator

from ..errors import ChannelClosed, ProtocolError
from ..protocol.messages import encode_message, parse_message
from .base import Channel, Message

logger = logging.getLogger(__name__)


class StreamChannel(Channel):
    """Channel over an asyncio StreamReader / StreamWriter pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._connected = True
        self._send_lock = asyncio.Lock()

    @classmethod
    def from_process(cls, process: asyncio.subprocess.Process) -> StreamChannel:
        """Coordinator-side channel to a worker subprocess.

        The subprocess must have been created with ``stdin=PIPE`` and
        ``stdout=PIPE``. Its lifecycle stays with the caller.
        """
        if process.stdin is None or process.stdout is None:
            raise ValueError("Process must be started with stdin=PIPE and stdout=PIPE")
        return cls(process.stdout, process.stdin)  # type: ignore[arg-type]

    @property
    def is_connected(self) -> bool:
        return self._connected and not self._writer.is_closing()

    async def connect(self) -> None:
        # Streams are already open when handed to us
        self._connected = True

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, BrokenPipeError) as e:
            logger.debug(f"Stream closed with error: {e}")

    async def send(self, message: Message) -> None:
        if not self.is_connected:
            raise ChannelClosed("Stream channel is closed")

        line = encode_message(message) + "\n"
        async with self._send_lock:
            try:
                self._writer.write(line.encode("utf-8"))
                await self._writer.drain()
            except (ConnectionError, BrokenPipeError) as e:
                self._connected = False
                raise ChannelClosed(f"Stream write failed: {e}") from e

    async def _read_line(self) -> bytes:
        """Read one newline-terminated line of any length.

        ``StreamReader.readline()`` fails on lines over the reader's limit
        (64 KiB by default), so oversized lines are read in pieces.
        Returns b"" at EOF.
        """
        chunks: list[bytes] = []
        while True:
            try:
                chunks.append(await self._reader.readuntil(b"\n"))
                break
            except asyncio.LimitOverrunError as e:
                chunks.append(await self._reader.readexactly(e.consumed))
            except asyncio.IncompleteReadError as e:
                chunks.append(e.partial)
                break
        return b"".join(chunks)

    async def receive(self) -> AsyncIterator[Message]:
        while self._connected:
            line = await self._read_line()
            if not line:
                # EOF - the other side went away
                self._connected = False
                break

            try:
                line_str = line.decode("utf-8").strip()
            except UnicodeDecodeError:
                logger.debug(f"Skipping non-UTF-8 line: {line[:50]!r}")
                continue
            if not line_str:
                continue

            if not line_str.startswith("{"):
                logger.debug(f"Skipping non-JSON line: {line_str[:50]}")
                continue

            try:
                yield parse_message(line_str)
            except ProtocolError as e:
                logger.debug(f"Failed to parse message: {e} (line: {line_str[:50]})")


async def open_stdio_channel() -> StreamChannel:
    """Worker-side channel over this process's stdin/stdout.

    Logging must not go to stdout while this channel is in use.
    """
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    transport, write_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout
    )
    writer = asyncio.StreamWriter(transport, write_protocol, reader, loop)
    return StreamChannel(reader, writer)
