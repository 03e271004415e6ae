"""
Client for running tscwatch as a child process.

WatchClient starts ``python -m tscwatch`` with an IPC socket, delivers its
compile events to registered listeners (or an async iterator), and can
ask it to re-run any hook.

Example usage:
    client = WatchClient()
    client.on("success", lambda: print("compiled"))
    client.on("file_emitted", lambda path: print("wrote", path))
    await client.start("--project", ".", "--on-success", "node dist/main.js")
    ...
    client.run_on_success_command()
    await client.kill()
"""

from __future__ import annotations

import asyncio as _asyncio
import collections as _collections
import collections.abc as _abc
import logging as _logging
import os as _os
import pathlib as _pathlib
import socket as _socket
import sys as _sys
import typing as _typing

import tscwatch.constants as constants
import tscwatch.hooks.events as hook_events
import tscwatch.ipc.channel as channel

_logger = _logging.getLogger(__name__)

EXIT_EVENT = "exit"
"""Listener name for the child's exit; the callback receives the exit status."""

Listener = _abc.Callable[..., _typing.Any]


class WatchClient:
    """
    Runs tscwatch as a child process and relays its events.

    Listener callbacks take no arguments, except ``file_emitted`` (the
    path) and ``exit`` (the exit status).
    """

    def __init__(
        self,
        *,
        python: str | None = None,
        cwd: _pathlib.Path | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            python: Interpreter used to run tscwatch. Defaults to the current one.
            cwd: Working directory of the child.
        """
        self._python = python or _sys.executable
        self._cwd = cwd
        self._listeners: dict[str, list[Listener]] = _collections.defaultdict(list)
        self._subscribers: set[_asyncio.Queue[hook_events.EventMessage | None]] = set()
        self._finished = False
        self._process: _asyncio.subprocess.Process | None = None
        self._channel: channel.IpcChannel | None = None
        self._reader: _asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def pending_events(self) -> int:
        """Events delivered to active events() iterators but not yet consumed."""
        return sum(queue.qsize() for queue in self._subscribers)

    def on(self, event: str, callback: Listener) -> None:
        """
        Register a listener.

        Args:
            event: An event name (``started``, ``first_success``, ``success``,
                ``compile_errors``, ``file_emitted``) or ``exit``.
            callback: Called when the event arrives.

        Raises:
            ValueError: If the event name is unknown.
        """
        if event != EXIT_EVENT:
            hook_events.WatchEvent(event)
        self._listeners[event].append(callback)

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    async def start(self, *args: str) -> None:
        """
        Start tscwatch with the given command line arguments.

        Raises:
            RuntimeError: If the client is already running.
        """
        if self.running:
            raise RuntimeError("tscwatch is already running")
        self._finished = False

        parent_sock, child_sock = _socket.socketpair()
        env = _os.environ.copy()
        env[constants.ENV_CHANNEL_FD] = str(child_sock.fileno())
        try:
            self._process = await _asyncio.create_subprocess_exec(
                self._python,
                "-m",
                "tscwatch",
                *args,
                env=env,
                cwd=str(self._cwd) if self._cwd is not None else None,
                pass_fds=(child_sock.fileno(),),
            )
        except BaseException:
            parent_sock.close()
            raise
        finally:
            child_sock.close()

        self._channel = await channel.IpcChannel.from_socket(parent_sock)
        self._reader = _asyncio.get_running_loop().create_task(self._read())

    async def events(self) -> _abc.AsyncIterator[hook_events.EventMessage]:
        """
        Yield events until the child exits.

        Only events that arrive while the iterator is active are seen;
        nothing is buffered for iterators that do not exist yet.
        """
        if self._finished:
            return
        queue: _asyncio.Queue[hook_events.EventMessage | None] = _asyncio.Queue()
        self._subscribers.add(queue)
        try:
            while True:
                message = await queue.get()
                if message is None:
                    return
                yield message
        finally:
            self._subscribers.discard(queue)

    def run_on_compilation_started_command(self) -> None:
        self._send(hook_events.HookKind.COMPILATION_STARTED)

    def run_on_compilation_complete_command(self) -> None:
        self._send(hook_events.HookKind.COMPILATION_COMPLETE)

    def run_on_first_success_command(self) -> None:
        self._send(hook_events.HookKind.FIRST_SUCCESS)

    def run_on_failure_command(self) -> None:
        self._send(hook_events.HookKind.FAILURE)

    def run_on_success_command(self) -> None:
        self._send(hook_events.HookKind.SUCCESS)

    async def wait(self) -> int:
        """Wait for the child to exit and return its exit status."""
        if self._process is None:
            raise RuntimeError("tscwatch has not been started")
        returncode = await self._process.wait()
        if self._reader is not None:
            await self._reader
        return returncode

    async def kill(self) -> int | None:
        """Terminate the child, wait for it, and drop all listeners."""
        returncode: int | None = None
        if self._process is not None:
            if self._process.returncode is None:
                try:
                    self._process.terminate()
                except ProcessLookupError:
                    pass
            returncode = await self.wait()
        if self._channel is not None:
            await self._channel.close()
        self.remove_all_listeners()
        return returncode

    def _send(self, kind: hook_events.HookKind) -> None:
        if self._channel is None or self._channel.closed:
            _logger.debug("Not running; dropping %s", kind.token)
            return
        self._channel.send(kind.token)

    async def _read(self) -> None:
        assert self._channel is not None and self._process is not None
        try:
            async for payload in self._channel.messages():
                if not isinstance(payload, str):
                    _logger.warning("Unexpected message from tscwatch: %r", payload)
                    continue
                try:
                    message = hook_events.EventMessage.decode(payload)
                except ValueError:
                    _logger.warning("Unexpected message from tscwatch: %r", payload)
                    continue
                self._publish(message)
                if message.event is hook_events.WatchEvent.FILE_EMITTED:
                    self._dispatch(message.event.value, message.path)
                else:
                    self._dispatch(message.event.value)
        finally:
            returncode = await self._process.wait()
            self._finished = True
            self._publish(None)
            self._dispatch(EXIT_EVENT, returncode)

    def _publish(self, message: hook_events.EventMessage | None) -> None:
        for queue in self._subscribers:
            queue.put_nowait(message)

    def _dispatch(self, name: str, *args: _typing.Any) -> None:
        for callback in list(self._listeners.get(name, ())):
            try:
                callback(*args)
            except Exception:
                _logger.exception("%s listener %r failed", name, callback)
