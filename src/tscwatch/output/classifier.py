"""
Line classifier - maps one line of compiler output to state deltas.

Classification is a plain pattern match against tsc's watch-mode
phrasing, not a parser of its grammar. Each check is independent, so a
line spanning several markers sets several flags. The patterns live in
ClassifierPatterns so they can be replaced without touching the tracker.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import re as _re

import tscwatch.output.display as display


@_dataclasses.dataclass(frozen=True)
class LineClassification:
    """
    What one output line implies.

    Attributes:
        compilation_started: A compilation cycle begins on this line.
        compilation_error: The line is an error diagnostic.
        compilation_complete: A compilation cycle ends on this line.
        file_emitted: Path of a file the compiler wrote, if reported.
    """

    compilation_started: bool = False
    compilation_error: bool = False
    compilation_complete: bool = False
    file_emitted: str | None = None

    @classmethod
    def empty(cls) -> LineClassification:
        """Classification of a line that matches nothing."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return self == _EMPTY


_EMPTY = LineClassification()


@_dataclasses.dataclass(frozen=True)
class ClassifierPatterns:
    """Regular expressions recognised by the classifier."""

    compilation_started: tuple[_re.Pattern[str], ...] = (
        _re.compile(r"Starting compilation in watch mode\.\.\."),
        _re.compile(r"File change detected\. Starting incremental compilation\.\.\."),
    )
    compilation_error: tuple[_re.Pattern[str], ...] = (
        # src/a.ts(10,5): error TS2322: ...
        _re.compile(r"\(\d+,\d+\): error TS\d+: "),
        # src/a.ts:10:5 - error TS2322: ...   (--pretty)
        _re.compile(r":\d+:\d+ - error TS\d+: "),
    )
    compilation_complete: tuple[_re.Pattern[str], ...] = (
        _re.compile(r"Compilation complete\. Watching for file changes\."),
        _re.compile(r"Found \d+ errors?\. Watching for file changes\."),
    )
    file_emitted: _re.Pattern[str] = _re.compile(r"TSFILE:\s*(.*)")


class LineClassifier:
    """Classifies compiler output lines. Stateless and side-effect free."""

    def __init__(self, patterns: ClassifierPatterns | None = None) -> None:
        self._patterns = patterns or ClassifierPatterns()

    @property
    def patterns(self) -> ClassifierPatterns:
        return self._patterns

    def classify(self, line: str) -> LineClassification:
        """
        Classify one line of output.

        ANSI colour codes are removed before matching, so coloured and
        plain output classify the same way.
        """
        plain = display.strip_ansi(line)
        patterns = self._patterns

        file_match = patterns.file_emitted.search(plain)
        file_emitted = file_match.group(1).strip() if file_match else None

        return LineClassification(
            compilation_started=_any_match(patterns.compilation_started, plain),
            compilation_error=_any_match(patterns.compilation_error, plain),
            compilation_complete=_any_match(patterns.compilation_complete, plain),
            file_emitted=file_emitted or None,
        )


def _any_match(patterns: tuple[_re.Pattern[str], ...], line: str) -> bool:
    return any(pattern.search(line) for pattern in patterns)


_default_classifier = LineClassifier()


def classify(line: str) -> LineClassification:
    """Classify a line with the default tsc patterns."""
    return _default_classifier.classify(line)
