"""
Terminal display of compiler output.

Lines from tsc are echoed to the terminal through a rich Console, with
diagnostics and completion summaries highlighted. tsc's own usage text is
extended so ``tsc --help`` through tscwatch lists the hook options.
"""

from __future__ import annotations

import re as _re

import rich.console as _rich_console
import rich.text as _rich_text

ANSI_PATTERN = _re.compile(
    "[\u001b\u009b][\\[\\]()#;?]*"
    "(?:(?:(?:[a-zA-Z\\d]*(?:;[a-zA-Z\\d]*)*)?\u0007)"
    "|(?:(?:\\d{1,4}(?:;\\d{0,4})*)?[\\dA-PRZcf-ntqry=><~]))"
)
"""ANSI escape sequences (colours, cursor movement, screen clears)."""

CLEAR_SEQUENCE = "\u001bc"
"""Full terminal reset tsc writes at the start of each cycle."""

SEPARATOR = "\n\n----------------------"
"""Printed before each compilation start when screen clearing is disabled."""

_USAGE_PATTERN = _re.compile(r" -w, --watch.*Watch input files\.")

_USAGE_ADDITION = "\n".join(
    [
        " -w, --watch                                        Watch input files. [always on]",
        " --onSuccess COMMAND                                Executes `COMMAND` on **every successful** compilation.",
        " --onFirstSuccess COMMAND                           Executes `COMMAND` on the **first successful** compilation.",
        " --onFailure COMMAND                                Executes `COMMAND` on **every failed** compilation.",
        " --onCompilationStarted COMMAND                     Executes `COMMAND` on **every compilation start** event.",
        " --onCompilationComplete COMMAND                    Executes `COMMAND` on **every successful or failed** compilation.",
        " --noColors                                         Removes the red/green colors from the compiler output",
        " --noClear                                          Prevents the compiler from clearing the screen",
        " --compiler PATH                                    The PATH will be used instead of typescript compiler. Defaults typescript/bin/tsc.",
    ]
)

# Highlight rules, applied in order: (pattern, style)
_HIGHLIGHTS: tuple[tuple[_re.Pattern[str], str], ...] = (
    (_re.compile(r"\(\d+,\d+\): error TS\d+: "), "cyan"),
    (_re.compile(r":\d+:\d+ - error TS\d+: "), "cyan"),
    (_re.compile(r" ?Found [1-9]\d* errors?\. Watching for file changes\."), "red"),
    (_re.compile(r" ?Found 0 errors\. Watching for file changes\."), "green"),
    (_USAGE_PATTERN, "yellow"),
)


def strip_ansi(line: str) -> str:
    """Remove ANSI escape sequences from a line."""
    return ANSI_PATTERN.sub("", line)


def delete_clear(line: str) -> str:
    """Remove a leading terminal clear sequence, if present."""
    if line.startswith(CLEAR_SEQUENCE):
        return line[len(CLEAR_SEQUENCE) :]
    return line


def manipulate(line: str) -> str:
    """Extend tsc's ``--watch`` usage line with the tscwatch options."""
    return _USAGE_PATTERN.sub(lambda _match: _USAGE_ADDITION, line)


def colorize(line: str) -> _rich_text.Text:
    """Convert a line to rich Text, keeping tsc's colours and adding highlights."""
    text = _rich_text.Text.from_ansi(line)
    for pattern, style in _HIGHLIGHTS:
        text.highlight_regex(pattern, style=style)
    return text


class OutputPrinter:
    """
    Echoes compiler output to the terminal.

    With colours disabled, all escape sequences are stripped and nothing
    is highlighted.
    """

    def __init__(
        self,
        *,
        no_colors: bool = False,
        no_clear: bool = False,
        console: _rich_console.Console | None = None,
    ) -> None:
        """
        Initialize the printer.

        Args:
            no_colors: Print plain text only.
            no_clear: Screen clearing is disabled, so print a separator
                before each compilation start to keep cycles apart.
            console: Console to print to (defaults to stdout).
        """
        self._no_colors = no_colors
        self._no_clear = no_clear
        self._console = console or _rich_console.Console(
            color_system=None if no_colors else "auto",
            highlight=False,
            soft_wrap=True,
        )

    @property
    def console(self) -> _rich_console.Console:
        return self._console

    def print_line(self, line: str, *, compilation_started: bool = False) -> None:
        """Print one line of compiler output."""
        if self._no_clear and compilation_started:
            self._console.print(SEPARATOR, markup=False)

        if self._no_colors:
            self._console.print(_rich_text.Text(strip_ansi(line)))
        else:
            self._console.print(colorize(line))
