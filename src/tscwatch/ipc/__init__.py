"""
Parent-process communication for tscwatch.

Events go out as JSON strings over an inherited socket; manual hook
trigger tokens come back the same way.
"""

from tscwatch.ipc.broadcaster import EventBroadcaster
from tscwatch.ipc.channel import ChannelClosedError, IpcChannel, MessageSink

__all__ = ["ChannelClosedError", "EventBroadcaster", "IpcChannel", "MessageSink"]
