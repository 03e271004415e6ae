"""Event broadcaster - forwards compile events to the parent process."""

from __future__ import annotations

import logging as _logging

import tscwatch.hooks.events as events
import tscwatch.ipc.channel as channel

_logger = _logging.getLogger(__name__)


class EventBroadcaster:
    """
    Sends events to the parent as flat string payloads.

    Without an attached channel every emit is a silent no-op. Messages
    are sent immediately in call order; nothing is batched or deduplicated.
    """

    def __init__(self, sink: channel.MessageSink | None = None) -> None:
        self._sink = sink

    @property
    def attached(self) -> bool:
        return self._sink is not None and not self._sink.closed

    def attach(self, sink: channel.MessageSink | None) -> None:
        self._sink = sink

    def emit(self, message: events.EventMessage) -> None:
        """Send one event to the parent, if one is listening."""
        if not self.attached:
            return
        payload = message.encode()
        _logger.debug("Emitting %s", payload)
        self._sink.send(payload)  # type: ignore[union-attr]
