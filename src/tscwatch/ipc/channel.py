"""
IPC channel to a parent process.

Messages are JSON values, one per line, over a stream socket whose file
descriptor the parent passes down. This is the framing node uses for
``child_process.fork``, so a node parent can talk to tscwatch the same
way it talks to a forked node script.
"""

from __future__ import annotations

import asyncio as _asyncio
import collections.abc as _abc
import json as _json
import logging as _logging
import socket as _socket
import typing as _typing

_logger = _logging.getLogger(__name__)

# Upper bound on one inbound message line
_READ_LIMIT = 1024 * 1024


class ChannelClosedError(Exception):
    """Raised when sending on a closed channel."""

    pass


class MessageSink(_typing.Protocol):
    """Anything events can be sent to."""

    @property
    def closed(self) -> bool: ...

    def send(self, payload: _typing.Any) -> None: ...


class IpcChannel:
    """
    Bidirectional newline-delimited JSON channel.

    send() only writes to the transport buffer, so it never suspends and
    messages leave in the order they were sent.
    """

    def __init__(
        self,
        reader: _asyncio.StreamReader,
        writer: _asyncio.StreamWriter,
    ) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    async def from_socket(cls, sock: _socket.socket) -> IpcChannel:
        """Open a channel over a connected stream socket."""
        sock.setblocking(False)
        reader, writer = await _asyncio.open_connection(sock=sock, limit=_READ_LIMIT)
        return cls(reader, writer)

    @classmethod
    async def from_fd(cls, fd: int) -> IpcChannel:
        """
        Open a channel over an inherited socket descriptor.

        Raises:
            OSError: If the descriptor is not an open socket.
        """
        return await cls.from_socket(_socket.socket(fileno=fd))

    @property
    def closed(self) -> bool:
        return self._writer.is_closing()

    def send(self, payload: _typing.Any) -> None:
        """
        Queue one message.

        Raises:
            ChannelClosedError: If the channel has been closed.
        """
        if self.closed:
            raise ChannelClosedError("IPC channel is closed")
        self._writer.write(_json.dumps(payload).encode("utf-8") + b"\n")

    async def flush(self) -> None:
        """Wait until queued messages have been handed to the OS."""
        if self.closed:
            return
        try:
            await self._writer.drain()
        except ConnectionError as e:
            _logger.debug("IPC peer went away: %s", e)

    async def messages(self) -> _abc.AsyncIterator[_typing.Any]:
        """
        Yield inbound messages until the peer disconnects.

        Lines that are not valid JSON are logged and skipped.
        """
        while True:
            try:
                line = await self._reader.readline()
            except (ConnectionError, _asyncio.LimitOverrunError, ValueError) as e:
                _logger.warning("IPC channel read failed: %s", e)
                return
            if not line:
                return

            line = line.strip()
            if not line:
                continue
            try:
                yield _json.loads(line)
            except _json.JSONDecodeError:
                _logger.warning("Ignoring malformed IPC message: %r", line[:200])

    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        if self.closed:
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError):
            pass
