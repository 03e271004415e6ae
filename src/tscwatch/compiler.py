"""
Compiler resolution and command line construction.

The compiler is a node script (``typescript/bin/tsc`` by default). It is
located the way node's ``require.resolve`` would find it: a path is used
as given, a bare module name is looked up in ``node_modules`` of the
working directory and each of its parents.
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import shutil as _shutil
import typing as _typing

import tscwatch.constants as constants

if _typing.TYPE_CHECKING:
    import tscwatch.config.settings as settings_module

_logger = _logging.getLogger(__name__)

_WATCH_FLAGS = ("--watch", "-w")
_LIST_EMITTED_FLAG = "--listEmittedFiles"
_SCRIPT_SUFFIXES = ("", ".js", ".cjs")


class CompilerNotFoundError(Exception):
    """Raised when the compiler or node itself cannot be found. Fatal at startup."""

    pass


def _is_path(compiler: str) -> bool:
    return _pathlib.Path(compiler).is_absolute() or compiler.startswith(
        ("./", "../", ".\\", "..\\")
    )


def _existing_script(path: _pathlib.Path) -> _pathlib.Path | None:
    for suffix in _SCRIPT_SUFFIXES:
        candidate = path.with_name(path.name + suffix)
        if candidate.is_file():
            return candidate
    return None


def resolve_compiler(
    compiler: str = constants.DEFAULT_COMPILER,
    start: _pathlib.Path | None = None,
) -> _pathlib.Path:
    """
    Locate the compiler script.

    Args:
        compiler: Module name (``typescript/bin/tsc``) or path to a script.
        start: Directory to resolve from. Defaults to cwd.

    Returns:
        Absolute path of the compiler script.

    Raises:
        CompilerNotFoundError: If the script cannot be found.
    """
    base = (start or _pathlib.Path.cwd()).resolve()

    if _is_path(compiler):
        found = _existing_script(base / compiler)
        if found is not None:
            return found.resolve()
        raise CompilerNotFoundError(f"Cannot find module '{compiler}'")

    for directory in (base, *base.parents):
        found = _existing_script(directory / "node_modules" / compiler)
        if found is not None:
            _logger.debug("Resolved compiler %s to %s", compiler, found)
            return found.resolve()

    raise CompilerNotFoundError(
        f"Cannot find module '{compiler}' (searched node_modules from {base} upwards)"
    )


def find_node(executable: str = constants.NODE_EXECUTABLE) -> str:
    """
    Locate the node executable (a name on PATH or a path).

    Raises:
        CompilerNotFoundError: If node is not installed.
    """
    node = _shutil.which(executable)
    if node is None:
        raise CompilerNotFoundError(f"Cannot find the '{executable}' executable")
    return node


def prepare_compiler_args(
    args: _typing.Sequence[str],
    *,
    signal_emitted_files: bool = False,
) -> list[str]:
    """
    Complete the compiler arguments.

    Watch mode is always on. When emitted files are signalled, tsc is
    asked to list them (``TSFILE:`` lines).
    """
    result = list(args)
    if signal_emitted_files and _LIST_EMITTED_FLAG not in result:
        result.append(_LIST_EMITTED_FLAG)
    if not any(flag in result for flag in _WATCH_FLAGS):
        result.append("--watch")
    return result


def build_command(
    settings: settings_module.Settings,
    args: _typing.Sequence[str],
    *,
    cwd: _pathlib.Path | None = None,
) -> list[str]:
    """
    Build the full command line for the watched compiler.

    Returns:
        ``[node, (--max_old_space_size=N), tsc, *args]``

    Raises:
        CompilerNotFoundError: If node or the compiler cannot be found.
    """
    compiler = resolve_compiler(settings.compiler, cwd)
    node = find_node(settings.node)

    command = [node]
    if settings.max_node_mem:
        command.append(f"--max_old_space_size={settings.max_node_mem}")
    command.append(str(compiler))
    command.extend(
        prepare_compiler_args(args, signal_emitted_files=settings.signal_emitted_files)
    )
    return command
