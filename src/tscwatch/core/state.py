"""
Compilation state tracking.

Folds successive line classifications into the "has this compilation had
an error since it started" flag and decides, per line, which events to
emit and which hooks to restart.
"""

from __future__ import annotations

import dataclasses as _dataclasses

import tscwatch.hooks.events as hook_events
import tscwatch.output.classifier as classifier


@_dataclasses.dataclass
class WatcherState:
    """
    Mutable state of one watch session.

    Attributes:
        error_since_start: An error was seen since the latest compilation
            start. Starts false, so a completion seen before any start
            counts as a success unless an error preceded it.
        first_success_fired: The first-success event has been emitted.
            Set once and never reset.
    """

    error_since_start: bool = False
    first_success_fired: bool = False


@_dataclasses.dataclass
class TrackerStep:
    """Consequences of one line, in the order they must be applied."""

    events: list[hook_events.EventMessage] = _dataclasses.field(default_factory=list)
    hooks: list[hook_events.HookKind] = _dataclasses.field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.events and not self.hooks


class CompilationTracker:
    """
    State machine over classified compiler output.

    Not thread-safe; it is driven from the event loop only.
    """

    def __init__(self, state: WatcherState | None = None) -> None:
        self.state = state or WatcherState()

    def feed(self, result: classifier.LineClassification) -> TrackerStep:
        """
        Apply one line's classification.

        Args:
            result: Classification of the line.

        Returns:
            Events to emit and hooks to restart for this line.
        """
        state = self.state
        step = TrackerStep()

        # A start resets the flag to this line's own error marker.
        state.error_since_start = (
            not result.compilation_started and state.error_since_start
        ) or result.compilation_error

        if result.file_emitted is not None:
            step.events.append(hook_events.EventMessage.file_emitted(result.file_emitted))

        if result.compilation_started:
            step.hooks.append(hook_events.HookKind.COMPILATION_STARTED)
            step.events.append(hook_events.EventMessage.started())

        if result.compilation_complete:
            step.hooks.append(hook_events.HookKind.COMPILATION_COMPLETE)

            if state.error_since_start:
                step.events.append(hook_events.EventMessage.compile_errors())
                step.hooks.append(hook_events.HookKind.FAILURE)
            else:
                if not state.first_success_fired:
                    state.first_success_fired = True
                    step.events.append(hook_events.EventMessage.first_success())
                    step.hooks.append(hook_events.HookKind.FIRST_SUCCESS)

                step.events.append(hook_events.EventMessage.success())
                step.hooks.append(hook_events.HookKind.SUCCESS)

        return step
