"""
Main CLI entry point for tscwatch.

Provides the command-line interface using Click. Options tscwatch does
not know are passed through to the compiler, so ``tscwatch --project .``
runs ``tsc --project . --watch``.
"""

import asyncio as _asyncio
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import click as _click
import pydantic as _pydantic
import rich.console as _rich_console
import rich.logging as _rich_logging

import tscwatch
import tscwatch.compiler as compiler_module
import tscwatch.config as config
import tscwatch.constants as constants
import tscwatch.ipc as ipc
import tscwatch.watcher as watcher

_logger = _logging.getLogger(__name__)

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
    "ignore_unknown_options": True,
    "allow_extra_args": True,
}


def _run_async(coro: _typing.Coroutine[_typing.Any, _typing.Any, _typing.Any]) -> _typing.Any:
    """Run an async coroutine synchronously."""
    return _asyncio.run(coro)


def _configure_logging(level: str) -> None:
    """Send tscwatch's own diagnostics to stderr through rich."""
    package_logger = _logging.getLogger("tscwatch")
    package_logger.setLevel(level)
    if not any(isinstance(h, _rich_logging.RichHandler) for h in package_logger.handlers):
        handler = _rich_logging.RichHandler(
            console=_rich_console.Console(stderr=True),
            show_time=False,
            show_path=False,
        )
        handler.setFormatter(_logging.Formatter("%(message)s"))
        package_logger.addHandler(handler)


async def _watch(settings: config.Settings, command: list[str]) -> int:
    """Open the parent channel (if any) and run the watcher to completion."""
    channel: ipc.IpcChannel | None = None
    if settings.channel_fd is not None:
        try:
            channel = await ipc.IpcChannel.from_fd(settings.channel_fd)
        except OSError as e:
            _logger.warning("Cannot open IPC channel on fd %d: %s", settings.channel_fd, e)

    return await watcher.Watcher(command, settings=settings, ipc=channel).run()


@_click.command(context_settings=CONTEXT_SETTINGS)
@_click.version_option(tscwatch.__version__, "--version", prog_name="tscwatch")
@_click.option(
    "--on-first-success",
    "--onFirstSuccess",
    "on_first_success",
    metavar="COMMAND",
    default=None,
    help="Run COMMAND on the first successful compilation only",
)
@_click.option(
    "--on-success",
    "--onSuccess",
    "on_success",
    metavar="COMMAND",
    default=None,
    help="Run COMMAND on every successful compilation",
)
@_click.option(
    "--on-failure",
    "--onFailure",
    "on_failure",
    metavar="COMMAND",
    default=None,
    help="Run COMMAND on every failed compilation",
)
@_click.option(
    "--on-compilation-started",
    "--onCompilationStarted",
    "on_compilation_started",
    metavar="COMMAND",
    default=None,
    help="Run COMMAND whenever a compilation starts",
)
@_click.option(
    "--on-compilation-complete",
    "--onCompilationComplete",
    "on_compilation_complete",
    metavar="COMMAND",
    default=None,
    help="Run COMMAND whenever a compilation completes, with or without errors",
)
@_click.option(
    "--max-node-mem",
    "--maxNodeMem",
    "max_node_mem",
    type=int,
    default=None,
    help="Memory limit for the compiler's node process, in MB",
)
@_click.option(
    "--node",
    type=str,
    default=None,
    help="node executable that runs the compiler (default: node on PATH)",
)
@_click.option(
    "--compiler",
    type=str,
    default=None,
    help=f"Compiler module or script path (default: {constants.DEFAULT_COMPILER})",
)
@_click.option("--no-colors", "--noColors", "no_colors", is_flag=True, help="Print output without colors")
@_click.option(
    "--no-clear",
    "--noClear",
    "no_clear",
    is_flag=True,
    help="Do not let the compiler clear the screen between compilations",
)
@_click.option("--silent", is_flag=True, help="Do not print compiler output")
@_click.option(
    "--signal-emitted-files",
    "--signalEmittedFiles",
    "signal_emitted_files",
    is_flag=True,
    help="Report files written by the compiler as file_emitted events",
)
@_click.option(
    "--keep-first-success-on-exit",
    is_flag=True,
    help="Leave the first-success command running when tscwatch exits",
)
@_click.option(
    "--config",
    "config_file",
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help=f"Config file (default: ./{constants.CONFIG_FILE_NAME} if present)",
)
@_click.option("--verbose", is_flag=True, help="Log hook restarts and kills to stderr")
@_click.argument("compiler_args", nargs=-1, type=_click.UNPROCESSED)
def cli(
    compiler_args: tuple[str, ...],
    on_first_success: str | None,
    on_success: str | None,
    on_failure: str | None,
    on_compilation_started: str | None,
    on_compilation_complete: str | None,
    max_node_mem: int | None,
    node: str | None,
    compiler: str | None,
    no_colors: bool,
    no_clear: bool,
    silent: bool,
    signal_emitted_files: bool,
    keep_first_success_on_exit: bool,
    config_file: _pathlib.Path | None,
    verbose: bool,
) -> None:
    """tscwatch - run the TypeScript compiler in watch mode with hook commands.

    Any option not listed here is passed to the compiler, so -v still
    prints the compiler version. Use -- to pass options tscwatch would
    otherwise consume (e.g. tscwatch -- --help).
    """
    try:
        settings = config.Settings.load(
            config_file,
            on_first_success=on_first_success,
            on_success=on_success,
            on_failure=on_failure,
            on_compilation_started=on_compilation_started,
            on_compilation_complete=on_compilation_complete,
            max_node_mem=max_node_mem,
            node=node,
            compiler=compiler,
            no_colors=no_colors or None,
            no_clear=no_clear or None,
            silent=silent or None,
            signal_emitted_files=signal_emitted_files or None,
            kill_first_success_on_exit=False if keep_first_success_on_exit else None,
            log_level="DEBUG" if verbose else None,
        )
    except (config.ConfigFileError, _pydantic.ValidationError) as e:
        _click.echo(f"tscwatch: {e}", err=True)
        raise SystemExit(constants.EXIT_CONFIG_ERROR) from None

    _configure_logging(settings.log_level)

    try:
        command = compiler_module.build_command(settings, compiler_args)
    except compiler_module.CompilerNotFoundError as e:
        _click.echo(str(e), err=True)
        raise SystemExit(constants.EXIT_COMPILER_NOT_FOUND) from None

    try:
        exit_code = _run_async(_watch(settings, command))
    except OSError as e:
        _click.echo(f"tscwatch: cannot start compiler: {e}", err=True)
        raise SystemExit(constants.EXIT_COMPILER_NOT_FOUND) from None

    raise SystemExit(exit_code)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="tscwatch")


if __name__ == "__main__":
    main()
