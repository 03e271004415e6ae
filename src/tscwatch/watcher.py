"""
Watcher - runs the compiler and dispatches its output.

Each output line is classified and its consequences applied before the
next line is read: the line is echoed, events go to the parent in line
order, and hook restarts are scheduled. Hook restarts are not awaited,
so a new compilation cycle can start while the previous cycle's hooks
are still being stopped.
"""

from __future__ import annotations

import asyncio as _asyncio
import contextlib as _contextlib
import logging as _logging
import os as _os
import pathlib as _pathlib
import signal as _signal
import typing as _typing

import tscwatch.config.settings as settings_module
import tscwatch.constants as constants
import tscwatch.core.state as core_state
import tscwatch.hooks.manager as manager
import tscwatch.ipc.broadcaster as broadcaster
import tscwatch.output.classifier as classifier
import tscwatch.output.display as display

if _typing.TYPE_CHECKING:
    import tscwatch.ipc.channel as channel

_logger = _logging.getLogger(__name__)

# Upper bound on one line of compiler output
_LINE_LIMIT = 1024 * 1024

_SHUTDOWN_SIGNALS = tuple(
    sig for sig in (getattr(_signal, "SIGINT", None), getattr(_signal, "SIGTERM", None)) if sig
)


class Watcher:
    """
    Drives one watched compiler process.

    Owns the compilation tracker and wires it to the printer, the event
    broadcaster and the hook manager.
    """

    def __init__(
        self,
        command: _typing.Sequence[str],
        *,
        settings: settings_module.Settings,
        hooks: manager.HookManager | None = None,
        events: broadcaster.EventBroadcaster | None = None,
        printer: display.OutputPrinter | None = None,
        line_classifier: classifier.LineClassifier | None = None,
        tracker: core_state.CompilationTracker | None = None,
        ipc: channel.IpcChannel | None = None,
        cwd: _pathlib.Path | None = None,
    ) -> None:
        """
        Initialize the watcher.

        Args:
            command: Command line of the watched compiler.
            settings: Loaded settings.
            hooks: Hook manager (defaults to one built from settings).
            events: Event broadcaster (defaults to one over ``ipc``).
            printer: Output printer (defaults to stdout per settings).
            line_classifier: Classifier (defaults to the tsc patterns).
            tracker: Compilation tracker (defaults to a fresh one).
            ipc: Parent channel for events and manual triggers, if any.
            cwd: Working directory for the compiler.
        """
        self._command = list(command)
        self._settings = settings
        self._hooks = hooks or manager.HookManager.from_settings(settings, cwd=cwd)
        self._ipc = ipc
        self._events = events or broadcaster.EventBroadcaster(ipc)
        self._printer = printer or display.OutputPrinter(
            no_colors=settings.no_colors,
            no_clear=settings.no_clear,
        )
        self._classifier = line_classifier or classifier.LineClassifier()
        self._tracker = tracker or core_state.CompilationTracker()
        self._cwd = cwd
        self._process: _asyncio.subprocess.Process | None = None
        self._shutdown_task: _asyncio.Task[None] | None = None
        self._signalled = False

    @property
    def hooks(self) -> manager.HookManager:
        return self._hooks

    @property
    def state(self) -> core_state.WatcherState:
        return self._tracker.state

    @property
    def shutting_down(self) -> bool:
        return self._shutdown_task is not None

    def process_line(self, raw: str) -> core_state.TrackerStep:
        """
        Handle one line of compiler output.

        Returns:
            The events emitted and hooks triggered for the line.
        """
        line = display.delete_clear(raw) if self._settings.no_clear else raw
        line = display.manipulate(line)
        result = self._classifier.classify(line)

        if not self._settings.silent:
            self._printer.print_line(line, compilation_started=result.compilation_started)

        step = self._tracker.feed(result)
        for message in step.events:
            self._events.emit(message)
        for kind in step.hooks:
            self._hooks.trigger(kind)
        return step

    def handle_message(self, payload: _typing.Any) -> None:
        """Handle one inbound message from the parent (a manual trigger token)."""
        if not isinstance(payload, str):
            _logger.warning("Unknown message %r", payload)
            return
        self._hooks.manual_retrigger_token(payload)

    async def run(self) -> int:
        """
        Run the compiler until it exits or a shutdown signal arrives.

        Returns:
            Exit status for tscwatch: the compiler's own status, or 0
            after a signal-triggered shutdown.
        """
        loop = _asyncio.get_running_loop()
        env = {
            key: value
            for key, value in _os.environ.items()
            if key not in constants.CHANNEL_ENV_VARS
        }
        self._process = await _asyncio.create_subprocess_exec(
            *self._command,
            stdout=_asyncio.subprocess.PIPE,
            cwd=str(self._cwd) if self._cwd is not None else None,
            env=env,
            limit=_LINE_LIMIT,
        )
        _logger.debug("Started compiler (pid %d): %s", self._process.pid, self._command)

        installed = self._install_signal_handlers(loop)
        listener = loop.create_task(self._listen()) if self._ipc is not None else None
        try:
            assert self._process.stdout is not None
            await self._pump(self._process.stdout)
            returncode = await self._process.wait()
        finally:
            if listener is not None:
                listener.cancel()
                with _contextlib.suppress(_asyncio.CancelledError):
                    await listener
            await self.shutdown()
            for sig in installed:
                loop.remove_signal_handler(sig)
            if self._ipc is not None:
                await self._ipc.flush()
                await self._ipc.close()

        if self._signalled:
            return 0
        return returncode if returncode >= 0 else 128 - returncode

    def request_shutdown(self, sig: int | None = None) -> _asyncio.Task[None]:
        """Start the shutdown sequence. Later calls return the same task."""
        if self._shutdown_task is None:
            self._shutdown_task = _asyncio.get_running_loop().create_task(
                self._shutdown(sig),
                name="tscwatch-shutdown",
            )
        return self._shutdown_task

    async def shutdown(self, sig: int | None = None) -> None:
        """Run the shutdown sequence exactly once and wait for it."""
        await self.request_shutdown(sig)

    async def _shutdown(self, sig: int | None) -> None:
        _logger.debug("Shutting down (signal %s)", sig)
        self._hooks.close()
        kills = _asyncio.ensure_future(
            self._hooks.kill_all(include_first_success=self._settings.kill_first_success_on_exit)
        )
        self._terminate_compiler(sig or _signal.SIGTERM)
        await kills
        await self._hooks.drain()
        await self._wait_compiler()

    def _terminate_compiler(self, sig: int) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass

    async def _wait_compiler(self) -> None:
        process = self._process
        if process is None:
            return
        try:
            await _asyncio.wait_for(process.wait(), timeout=self._settings.kill_timeout)
        except TimeoutError:
            _logger.debug("Compiler ignored termination, killing it")
            with _contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    async def _pump(self, stdout: _asyncio.StreamReader) -> None:
        """
        Feed compiler output to process_line() until EOF.

        A line longer than the stream limit is discarded up to its newline
        and the loop carries on with the next line.
        """
        oversized = False
        while True:
            try:
                raw = await stdout.readuntil(b"\n")
            except _asyncio.IncompleteReadError as e:
                # EOF; the last line may lack its newline
                if e.partial and not oversized:
                    self._process_raw(e.partial)
                return
            except _asyncio.LimitOverrunError as e:
                if not oversized:
                    _logger.warning(
                        "Skipping compiler output line longer than %d bytes", _LINE_LIMIT
                    )
                oversized = True
                await stdout.readexactly(e.consumed)
                continue

            if oversized:
                # Tail of the skipped line
                oversized = False
                continue
            self._process_raw(raw)

    def _process_raw(self, raw: bytes) -> None:
        self.process_line(raw.decode("utf-8", errors="replace").rstrip("\r\n"))

    async def _listen(self) -> None:
        assert self._ipc is not None
        async for payload in self._ipc.messages():
            self.handle_message(payload)
        _logger.debug("Parent closed the IPC channel")

    def _on_signal(self, sig: int) -> None:
        if self.shutting_down:
            return
        self._signalled = True
        self.request_shutdown(sig)

    def _install_signal_handlers(self, loop: _asyncio.AbstractEventLoop) -> list[int]:
        installed: list[int] = []
        for sig in _SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                _logger.debug("Signal handlers are not supported on this platform")
                break
            installed.append(sig)
        return installed
