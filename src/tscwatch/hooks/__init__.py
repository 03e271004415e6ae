"""
Hook lifecycle for tscwatch.

Hooks are external commands restarted on compile events. Each hook kind
has one slot holding at most one live process; a restart kills the
previous invocation before starting the next.

Example usage:
    from tscwatch.hooks import HookKind, HookManager

    manager = HookManager({HookKind.SUCCESS: "node ./dist/server.js"})
    manager.trigger(HookKind.SUCCESS)
    ...
    await manager.kill_all(include_first_success=True)
"""

from tscwatch.hooks.events import (
    EventMessage,
    HookKind,
    UnknownTokenError,
    WatchEvent,
)
from tscwatch.hooks.manager import HookManager
from tscwatch.hooks.slot import HookSlot

__all__ = [
    "EventMessage",
    "HookKind",
    "HookManager",
    "HookSlot",
    "UnknownTokenError",
    "WatchEvent",
]
