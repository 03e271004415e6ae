"""
Hook manager - coordinates the lifecycle of all hook commands.

The HookManager owns one HookSlot per HookKind. Compile events trigger a
restart of the matching slot without waiting for it to finish; the line
loop keeps reading while the previous invocation is being stopped.
"""

from __future__ import annotations

import asyncio as _asyncio
import collections.abc as _abc
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import tscwatch.constants as constants
import tscwatch.hooks.events as events
import tscwatch.hooks.slot as slot

if _typing.TYPE_CHECKING:
    import tscwatch.config.settings as settings_module

_logger = _logging.getLogger(__name__)


class HookManager:
    """
    Central manager for hook processes.

    Restarts of the same hook are strictly ordered (each slot serializes
    its own restarts). Restarts of different hooks run independently and
    have no ordering relative to one another.
    """

    def __init__(
        self,
        commands: _abc.Mapping[events.HookKind, str | None],
        *,
        cwd: _pathlib.Path | None = None,
        kill_timeout: float = constants.DEFAULT_KILL_TIMEOUT,
    ) -> None:
        """
        Initialize the hook manager.

        Args:
            commands: Command line for each hook kind. Missing kinds are
                treated as not configured.
            cwd: Working directory for hook processes.
            kill_timeout: Seconds to wait for a hook to exit after SIGTERM.
        """
        self._slots: dict[events.HookKind, slot.HookSlot] = {
            kind: slot.HookSlot(
                kind,
                commands.get(kind),
                cwd=cwd,
                kill_timeout=kill_timeout,
            )
            for kind in events.HookKind
        }
        self._tasks: set[_asyncio.Task[bool]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: settings_module.Settings,
        *,
        cwd: _pathlib.Path | None = None,
    ) -> HookManager:
        """Create a HookManager from loaded settings."""
        return cls(
            settings.hook_commands(),
            cwd=cwd,
            kill_timeout=settings.kill_timeout,
        )

    @classmethod
    def empty(cls) -> HookManager:
        """Create a HookManager with no hooks configured."""
        return cls({})

    def get_slot(self, kind: events.HookKind) -> slot.HookSlot:
        """Get the slot for a hook kind (for inspection/debugging)."""
        return self._slots[kind]

    def is_configured(self, kind: events.HookKind) -> bool:
        return self._slots[kind].is_configured

    @property
    def pending(self) -> int:
        """Number of restarts scheduled but not yet finished."""
        return len(self._tasks)

    async def restart(self, kind: events.HookKind) -> bool:
        """
        Restart a hook and wait for the restart to finish.

        Returns:
            True if a new invocation was started.
        """
        return await self._slots[kind].restart()

    def trigger(self, kind: events.HookKind) -> _asyncio.Task[bool] | None:
        """
        Schedule a restart of a hook without waiting for it.

        Must be called from within a running event loop.

        Returns:
            The scheduled task, or None if the hook is not configured.
        """
        hook_slot = self._slots[kind]
        if not hook_slot.is_configured or hook_slot.closed:
            return None

        task = _asyncio.get_running_loop().create_task(
            hook_slot.restart(),
            name=f"restart-{kind.name.lower()}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def manual_retrigger(self, kind: events.HookKind) -> _asyncio.Task[bool] | None:
        """
        Re-run a hook on request from the parent process.

        Same effect as an automatic trigger, and serialized with automatic
        restarts of the same hook through the slot lock.
        """
        _logger.debug("Manual trigger of %s hook", kind.name.lower())
        return self.trigger(kind)

    def manual_retrigger_token(self, token: str) -> _asyncio.Task[bool] | None:
        """Decode a manual trigger token and re-run its hook. Unknown tokens are ignored."""
        try:
            kind = events.HookKind.from_token(token)
        except events.UnknownTokenError:
            _logger.warning("Unknown message %r", token)
            return None
        return self.manual_retrigger(kind)

    async def kill_all(self, include_first_success: bool) -> None:
        """
        Terminate every live hook invocation.

        Args:
            include_first_success: Whether the first-success hook is
                killed too. It is a one-off milestone rather than a
                per-cycle hook, so callers may leave it running.
        """
        await _asyncio.gather(
            *(
                hook_slot.kill()
                for kind, hook_slot in self._slots.items()
                if include_first_success or kind is not events.HookKind.FIRST_SUCCESS
            )
        )

    def close(self) -> None:
        """Stop accepting restarts on every slot."""
        for hook_slot in self._slots.values():
            hook_slot.close()

    async def drain(self) -> None:
        """Wait for every scheduled restart to finish."""
        while self._tasks:
            await _asyncio.gather(*list(self._tasks), return_exceptions=True)

    def alive(self) -> list[events.HookKind]:
        """Hook kinds with a live invocation."""
        return [kind for kind, hook_slot in self._slots.items() if hook_slot.is_alive]

    def _task_done(self, task: _asyncio.Task[bool]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Restart task %s failed: %s", task.get_name(), exc)
