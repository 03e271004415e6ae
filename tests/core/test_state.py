"""Tests for the compilation state tracker."""

import pytest as _pytest

import tscwatch.core.state as state
import tscwatch.hooks.events as events
import tscwatch.output.classifier as classifier

STARTED = classifier.LineClassification(compilation_started=True)
ERROR = classifier.LineClassification(compilation_error=True)
COMPLETE = classifier.LineClassification(compilation_complete=True)


def _feed_all(
    tracker: state.CompilationTracker,
    results: list[classifier.LineClassification],
) -> tuple[list[events.WatchEvent], list[events.HookKind]]:
    emitted: list[events.WatchEvent] = []
    hooks: list[events.HookKind] = []
    for result in results:
        step = tracker.feed(result)
        emitted.extend(message.event for message in step.events)
        hooks.extend(step.hooks)
    return emitted, hooks


class TestCompilationTracker:
    """Tests for CompilationTracker.feed()."""

    @_pytest.fixture
    def tracker(self) -> state.CompilationTracker:
        return state.CompilationTracker()

    def test_initial_state(self, tracker: state.CompilationTracker) -> None:
        """A fresh tracker has seen no error and no success."""
        assert tracker.state == state.WatcherState()
        assert not tracker.state.error_since_start
        assert not tracker.state.first_success_fired

    def test_empty_line_does_nothing(self, tracker: state.CompilationTracker) -> None:
        """Unclassified lines produce no events or hooks."""
        step = tracker.feed(classifier.LineClassification.empty())
        assert step.is_empty

    def test_successful_cycle(self, tracker: state.CompilationTracker) -> None:
        """A clean cycle fires started, first success and success."""
        emitted, hooks = _feed_all(tracker, [STARTED, COMPLETE])

        assert emitted == [
            events.WatchEvent.STARTED,
            events.WatchEvent.FIRST_SUCCESS,
            events.WatchEvent.SUCCESS,
        ]
        assert hooks == [
            events.HookKind.COMPILATION_STARTED,
            events.HookKind.COMPILATION_COMPLETE,
            events.HookKind.FIRST_SUCCESS,
            events.HookKind.SUCCESS,
        ]

    def test_failed_cycle(self, tracker: state.CompilationTracker) -> None:
        """An error before completion makes the cycle a failure."""
        emitted, hooks = _feed_all(tracker, [STARTED, ERROR, COMPLETE])

        assert emitted == [events.WatchEvent.STARTED, events.WatchEvent.COMPILE_ERRORS]
        assert hooks == [
            events.HookKind.COMPILATION_STARTED,
            events.HookKind.COMPILATION_COMPLETE,
            events.HookKind.FAILURE,
        ]
        assert not tracker.state.first_success_fired

    def test_first_success_fires_once(self, tracker: state.CompilationTracker) -> None:
        """Only the first clean cycle is a first success."""
        emitted, hooks = _feed_all(tracker, [STARTED, COMPLETE] * 3)

        assert emitted.count(events.WatchEvent.FIRST_SUCCESS) == 1
        assert emitted.count(events.WatchEvent.SUCCESS) == 3
        assert hooks.count(events.HookKind.FIRST_SUCCESS) == 1
        assert hooks.count(events.HookKind.SUCCESS) == 3

    def test_first_success_after_failures(self, tracker: state.CompilationTracker) -> None:
        """First success waits for the first clean cycle."""
        _feed_all(tracker, [STARTED, ERROR, COMPLETE])
        emitted, _ = _feed_all(tracker, [STARTED, COMPLETE])

        assert emitted == [
            events.WatchEvent.STARTED,
            events.WatchEvent.FIRST_SUCCESS,
            events.WatchEvent.SUCCESS,
        ]

    def test_error_is_sticky_until_next_start(self, tracker: state.CompilationTracker) -> None:
        """Lines after an error do not clear the flag."""
        _feed_all(tracker, [STARTED, ERROR, classifier.LineClassification.empty()])
        assert tracker.state.error_since_start

        step = tracker.feed(COMPLETE)
        assert [m.event for m in step.events] == [events.WatchEvent.COMPILE_ERRORS]
        assert tracker.state.error_since_start

    def test_start_resets_error(self, tracker: state.CompilationTracker) -> None:
        """A new compilation start clears the previous cycle's error."""
        _feed_all(tracker, [STARTED, ERROR, COMPLETE])
        tracker.feed(STARTED)
        assert not tracker.state.error_since_start

    def test_start_line_with_error_keeps_error(self, tracker: state.CompilationTracker) -> None:
        """A line that both starts and errors leaves the flag set."""
        tracker.feed(classifier.LineClassification(compilation_started=True, compilation_error=True))
        assert tracker.state.error_since_start

    def test_complete_without_start_is_success(self, tracker: state.CompilationTracker) -> None:
        """A completion with no prior start or error counts as success."""
        emitted, _ = _feed_all(tracker, [COMPLETE])
        assert emitted == [events.WatchEvent.FIRST_SUCCESS, events.WatchEvent.SUCCESS]

    def test_complete_without_start_after_error_is_failure(
        self,
        tracker: state.CompilationTracker,
    ) -> None:
        """An error before any start still fails the completion."""
        emitted, _ = _feed_all(tracker, [ERROR, COMPLETE])
        assert emitted == [events.WatchEvent.COMPILE_ERRORS]

    def test_error_then_success_sequence(self, tracker: state.CompilationTracker) -> None:
        """Mixed cycles emit events in line order."""
        emitted, _ = _feed_all(tracker, [STARTED, COMPLETE, STARTED, ERROR, COMPLETE])

        assert emitted == [
            events.WatchEvent.STARTED,
            events.WatchEvent.FIRST_SUCCESS,
            events.WatchEvent.SUCCESS,
            events.WatchEvent.STARTED,
            events.WatchEvent.COMPILE_ERRORS,
        ]

    def test_file_emitted_comes_first(self, tracker: state.CompilationTracker) -> None:
        """A file event precedes the other events of its line."""
        step = tracker.feed(
            classifier.LineClassification(compilation_complete=True, file_emitted="/out/a.js")
        )
        assert step.events[0] == events.EventMessage.file_emitted("/out/a.js")
        assert step.hooks[0] is events.HookKind.COMPILATION_COMPLETE

    def test_started_and_complete_on_one_line(self, tracker: state.CompilationTracker) -> None:
        """Start hooks and events precede completion ones on the same line."""
        step = tracker.feed(
            classifier.LineClassification(compilation_started=True, compilation_complete=True)
        )
        assert step.hooks[:2] == [
            events.HookKind.COMPILATION_STARTED,
            events.HookKind.COMPILATION_COMPLETE,
        ]
        assert step.events[0].event is events.WatchEvent.STARTED

    def test_shared_state(self) -> None:
        """A tracker can be built over existing state."""
        watcher_state = state.WatcherState(first_success_fired=True)
        tracker = state.CompilationTracker(watcher_state)

        emitted, _ = _feed_all(tracker, [STARTED, COMPLETE])
        assert events.WatchEvent.FIRST_SUCCESS not in emitted
        assert tracker.state is watcher_state
