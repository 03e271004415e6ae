"""
Hook kinds and event messages.

These define the core data structures shared by the tracker, the hook
manager and the IPC layer:
- HookKind: The five hooks a user can configure, with their manual trigger tokens
- WatchEvent: Event names forwarded to a parent process
- EventMessage: One event as sent over the IPC channel
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum


class UnknownTokenError(ValueError):
    """Raised when an inbound manual-trigger token names no hook."""

    pass


class HookKind(_enum.Enum):
    """
    Lifecycle hooks that run an external command.

    The value of each member is the token a parent process sends to
    re-run that hook manually.
    """

    FIRST_SUCCESS = "run-on-first-success-command"
    """First successful compilation of the process lifetime. Fires at most once."""

    SUCCESS = "run-on-success-command"
    """Every compilation that completes without errors."""

    FAILURE = "run-on-failure-command"
    """Every compilation that completes with errors."""

    COMPILATION_STARTED = "run-on-compilation-started-command"
    """A compilation cycle begins."""

    COMPILATION_COMPLETE = "run-on-compilation-complete-command"
    """A compilation cycle ends, with or without errors."""

    @property
    def token(self) -> str:
        """Manual trigger token for this hook."""
        return self.value

    @property
    def setting_name(self) -> str:
        """Name of the settings field holding this hook's command."""
        return _SETTING_NAMES[self]

    @classmethod
    def from_token(cls, token: str) -> HookKind:
        """
        Decode a manual trigger token.

        Raises:
            UnknownTokenError: If the token matches no hook.
        """
        try:
            return cls(token)
        except ValueError:
            raise UnknownTokenError(f"Unknown hook token: {token!r}") from None


_SETTING_NAMES: dict[HookKind, str] = {
    HookKind.FIRST_SUCCESS: "on_first_success",
    HookKind.SUCCESS: "on_success",
    HookKind.FAILURE: "on_failure",
    HookKind.COMPILATION_STARTED: "on_compilation_started",
    HookKind.COMPILATION_COMPLETE: "on_compilation_complete",
}


class WatchEvent(_enum.Enum):
    """Events forwarded to the parent process."""

    STARTED = "started"
    FIRST_SUCCESS = "first_success"
    SUCCESS = "success"
    COMPILE_ERRORS = "compile_errors"
    FILE_EMITTED = "file_emitted"


@_dataclasses.dataclass(frozen=True)
class EventMessage:
    """
    One event as sent to the parent process.

    Attributes:
        event: Which event occurred.
        path: Emitted file path (only for FILE_EMITTED).
    """

    event: WatchEvent
    path: str | None = None

    @classmethod
    def started(cls) -> EventMessage:
        return cls(WatchEvent.STARTED)

    @classmethod
    def first_success(cls) -> EventMessage:
        return cls(WatchEvent.FIRST_SUCCESS)

    @classmethod
    def success(cls) -> EventMessage:
        return cls(WatchEvent.SUCCESS)

    @classmethod
    def compile_errors(cls) -> EventMessage:
        return cls(WatchEvent.COMPILE_ERRORS)

    @classmethod
    def file_emitted(cls, path: str) -> EventMessage:
        return cls(WatchEvent.FILE_EMITTED, path)

    def encode(self) -> str:
        """Flat string payload, e.g. ``success`` or ``file_emitted:/out/a.js``."""
        if self.event is WatchEvent.FILE_EMITTED:
            return f"{self.event.value}:{self.path}"
        return self.event.value

    @classmethod
    def decode(cls, payload: str) -> EventMessage:
        """
        Parse a payload produced by encode().

        Only the first colon separates the event name from its argument, so
        paths containing colons survive.

        Raises:
            ValueError: If the event name is not recognised.
        """
        name, sep, rest = payload.partition(":")
        event = WatchEvent(name)
        if event is WatchEvent.FILE_EMITTED:
            return cls(event, rest if sep else "")
        return cls(event)
