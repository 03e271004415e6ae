"""
tscwatch - TypeScript watch mode with lifecycle hooks

Runs ``tsc --watch``, follows its output, and restarts user commands when a
compilation starts, completes, succeeds or fails.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("tscwatch")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "tscwatch Contributors"

from tscwatch.config import Settings  # noqa: E402
from tscwatch.hooks import EventMessage, HookKind, HookManager, WatchEvent  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "EventMessage",
    "HookKind",
    "HookManager",
    "Settings",
    "WatchEvent",
]
