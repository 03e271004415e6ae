"""
Shared pytest fixtures for tscwatch tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import collections.abc as _abc
import os as _os
import pathlib as _pathlib
import shlex as _shlex
import sys as _sys
import typing as _typing

import pytest as _pytest

import tscwatch.hooks.events as events
import tscwatch.hooks.manager as manager

# Environment keys that leak configuration into tests
ENV_KEYS_TO_CLEAR = [
    "NODE_CHANNEL_FD",
    "NODE_CHANNEL_SERIALIZATION_MODE",
]


@_pytest.fixture(autouse=True)
def isolated_env(
    monkeypatch: _pytest.MonkeyPatch,
    tmp_path: _pathlib.Path,
) -> _pathlib.Path:
    """Run every test in an empty directory without TSCWATCH_* settings."""
    for key in list(_os.environ):
        if key.startswith("TSCWATCH_") or key in ENV_KEYS_TO_CLEAR:
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class RecordingSink:
    """MessageSink that keeps every payload sent to it."""

    def __init__(self) -> None:
        self.sent: list[_typing.Any] = []
        self.closed = False

    def send(self, payload: _typing.Any) -> None:
        self.sent.append(payload)


@_pytest.fixture
def sink() -> RecordingSink:
    """A message sink that records payloads."""
    return RecordingSink()


@_pytest.fixture
def python_command() -> _abc.Callable[[str], str]:
    """Build a hook command line that runs a Python snippet."""

    def build(code: str) -> str:
        return f"{_shlex.quote(_sys.executable)} -c {_shlex.quote(code)}"

    return build


class RecordingHookManager(manager.HookManager):
    """HookManager that records triggers instead of spawning processes."""

    def __init__(self) -> None:
        super().__init__({})
        self.triggered: list[events.HookKind] = []

    def trigger(self, kind: events.HookKind) -> None:  # type: ignore[override]
        self.triggered.append(kind)
        return None


@_pytest.fixture
def recording_hooks() -> RecordingHookManager:
    """A hook manager that records which hooks were triggered."""
    return RecordingHookManager()
