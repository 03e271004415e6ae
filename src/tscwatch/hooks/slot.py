"""
Hook slot - owns the single live invocation of one hook command.

A slot guarantees that at most one process for its hook is alive at any
instant. Every restart first terminates the previous invocation (including
any children it started) and waits for it to exit before spawning the next.
"""

from __future__ import annotations

import asyncio as _asyncio
import logging as _logging
import os as _os
import pathlib as _pathlib
import shlex as _shlex
import signal as _signal

import tscwatch.constants as constants
import tscwatch.hooks.events as events

_logger = _logging.getLogger(__name__)

_SIGKILL = getattr(_signal, "SIGKILL", _signal.SIGTERM)


def _signal_process_tree(process: _asyncio.subprocess.Process, sig: int) -> None:
    """Send a signal to a hook's whole process group.

    Hooks run in their own session, so the group id equals the pid. A
    group that is already gone is not an error.
    """
    try:
        if hasattr(_os, "killpg"):
            _os.killpg(process.pid, sig)
        else:
            process.send_signal(sig)
    except ProcessLookupError:
        pass


class HookSlot:
    """
    Lifecycle slot for one hook kind.

    restart() and kill() are serialized through an asyncio.Lock, which is
    FIFO, so restarts of the same slot complete in the order they were
    requested and never interleave their kill and spawn phases.
    """

    def __init__(
        self,
        kind: events.HookKind,
        command: str | None,
        *,
        cwd: _pathlib.Path | None = None,
        kill_timeout: float = constants.DEFAULT_KILL_TIMEOUT,
    ) -> None:
        """
        Initialize the slot.

        Args:
            kind: Which hook this slot runs.
            command: Command line to run, or None if the hook is not configured.
            cwd: Working directory for the hook process.
            kill_timeout: Seconds to wait for SIGTERM before sending SIGKILL.
        """
        self.kind = kind
        self.command = command.strip() if command and command.strip() else None
        self._cwd = cwd
        self._kill_timeout = kill_timeout
        self._process: _asyncio.subprocess.Process | None = None
        self._lock = _asyncio.Lock()
        self._closed = False

    @property
    def is_configured(self) -> bool:
        """Whether a command is configured for this hook."""
        return self.command is not None

    @property
    def is_alive(self) -> bool:
        """Whether the current invocation is still running."""
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        """Pid of the current invocation, if any."""
        return self._process.pid if self._process is not None else None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting restarts. A restart already queued will not spawn."""
        self._closed = True

    async def restart(self) -> bool:
        """
        Kill the current invocation, then start a new one.

        Returns:
            True if a new invocation was started.
        """
        async with self._lock:
            await self._kill_current()
            if self._closed or self.command is None:
                return False
            self._process = await self._spawn(self.command)
            return self._process is not None

    async def kill(self) -> None:
        """Terminate the current invocation and wait for it to exit."""
        async with self._lock:
            await self._kill_current()

    async def _spawn(self, command: str) -> _asyncio.subprocess.Process | None:
        env = {
            key: value
            for key, value in _os.environ.items()
            if key not in constants.CHANNEL_ENV_VARS
        }
        env["TSCWATCH_HOOK"] = self.kind.name.lower()

        try:
            argv = _shlex.split(command)
            process = await _asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self._cwd) if self._cwd is not None else None,
                env=env,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            _logger.warning("Could not start %s hook %r: %s", self.kind.name.lower(), command, e)
            return None

        _logger.debug("Started %s hook (pid %d): %s", self.kind.name.lower(), process.pid, command)
        return process

    async def _kill_current(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return

        _logger.debug("Stopping %s hook (pid %d)", self.kind.name.lower(), process.pid)
        _signal_process_tree(process, _signal.SIGTERM)
        try:
            await _asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
        except TimeoutError:
            _logger.debug(
                "%s hook (pid %d) ignored SIGTERM for %ss, sending SIGKILL",
                self.kind.name.lower(),
                process.pid,
                self._kill_timeout,
            )
            _signal_process_tree(process, _SIGKILL)
            await process.wait()
