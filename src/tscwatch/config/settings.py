"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence, used by the CLI)
2. Environment variables with TSCWATCH_ prefix
3. YAML config file: explicit path, TSCWATCH_CONFIG, or ./tscwatch.yaml
4. Field defaults (lowest)

Example tscwatch.yaml:
    on_success: node ./dist/server.js
    on_failure: echo "build broken"
    no_clear: true
    kill_timeout: 10
"""

from __future__ import annotations

import contextvars as _contextvars
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings
import yaml as _yaml

import tscwatch.constants as constants
import tscwatch.hooks.events as events

# Explicit config file for the Settings currently being constructed (see Settings.load)
_explicit_config_path: _contextvars.ContextVar[_pathlib.Path | None] = _contextvars.ContextVar(
    "tscwatch_config_path", default=None
)


class ConfigFileError(Exception):
    """Raised when a config file cannot be read or is invalid."""

    def __init__(self, path: _pathlib.Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Config file {path}: {reason}")


def resolve_config_path(
    explicit: _pathlib.Path | None = None,
    *,
    cwd: _pathlib.Path | None = None,
) -> _pathlib.Path | None:
    """
    Find the config file to load.

    Tries (in order):
    1. The explicit path (must exist)
    2. TSCWATCH_CONFIG environment variable (must exist)
    3. tscwatch.yaml in the working directory (optional)

    Raises:
        ConfigFileError: If an explicitly requested file does not exist.
    """
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigFileError(explicit, "not found")
        return explicit

    if env_path := _os.environ.get(constants.ENV_CONFIG_FILE):
        path = _pathlib.Path(env_path)
        if not path.is_file():
            raise ConfigFileError(path, f"not found (from {constants.ENV_CONFIG_FILE})")
        return path

    default_path = (cwd or _pathlib.Path.cwd()) / constants.CONFIG_FILE_NAME
    if default_path.is_file():
        return default_path
    return None


def load_config_file(path: _pathlib.Path) -> dict[str, _typing.Any]:
    """
    Load a YAML config file into a dict.

    Keys may be written with dashes or underscores (``on-success`` and
    ``on_success`` are the same setting).

    Raises:
        ConfigFileError: If the file is not valid YAML, is not a mapping,
            or names unknown settings.
    """
    try:
        content = path.read_text(encoding="utf-8")
        data = _yaml.safe_load(content) or {}
    except OSError as e:
        raise ConfigFileError(path, str(e)) from e
    except _yaml.YAMLError as e:
        raise ConfigFileError(path, f"invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigFileError(path, "top level must be a mapping")

    normalized = {str(key).replace("-", "_"): value for key, value in data.items()}
    unknown = sorted(set(normalized) - set(Settings.model_fields))
    if unknown:
        raise ConfigFileError(path, f"unknown settings: {', '.join(unknown)}")
    return normalized


class YamlConfigSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """Settings source backed by a single YAML config file."""

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        path: _pathlib.Path | None,
    ) -> None:
        super().__init__(settings_cls)
        self._path = path
        self._data = load_config_file(path) if path is not None else {}

    @property
    def path(self) -> _pathlib.Path | None:
        return self._path

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, _typing.Any]:
        return {name: value for name, value in self._data.items() if value is not None}


class Settings(_pydantic_settings.BaseSettings):
    """
    tscwatch configuration settings.

    All settings can be overridden via environment variables with TSCWATCH_ prefix,
    e.g. TSCWATCH_ON_SUCCESS="node dist/index.js" or TSCWATCH_NO_COLORS=1.
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix=constants.ENV_PREFIX,
        extra="ignore",
    )

    # Hook commands
    on_first_success: str | None = None
    """Command run on the first successful compilation only."""

    on_success: str | None = None
    """Command run on every successful compilation."""

    on_failure: str | None = None
    """Command run on every compilation that completes with errors."""

    on_compilation_started: str | None = None
    """Command run whenever a compilation starts."""

    on_compilation_complete: str | None = None
    """Command run whenever a compilation completes, with or without errors."""

    # Watched tool
    node: str = constants.NODE_EXECUTABLE
    """Executable that runs the compiler script (name on PATH or a path)."""

    compiler: str = constants.DEFAULT_COMPILER
    """Compiler script, resolved through node_modules unless it is a path."""

    max_node_mem: _pydantic.PositiveInt | None = None
    """Value for node's --max_old_space_size, in MB."""

    signal_emitted_files: bool = False
    """Ask tsc to list emitted files and forward them as file_emitted events."""

    # Display
    no_colors: bool = False
    """Print compiler output without colours."""

    no_clear: bool = False
    """Strip tsc's screen clear sequence and separate cycles with a rule instead."""

    silent: bool = False
    """Do not echo compiler output."""

    # Hook lifecycle
    kill_first_success_on_exit: bool = True
    """Whether the first-success hook is killed on shutdown like the others."""

    kill_timeout: float = _pydantic.Field(default=constants.DEFAULT_KILL_TIMEOUT, gt=0)
    """Seconds a hook gets to exit after SIGTERM before SIGKILL."""

    # IPC
    channel_fd: _pydantic.NonNegativeInt | None = _pydantic.Field(
        default=None,
        validation_alias=_pydantic.AliasChoices(
            "channel_fd",
            constants.ENV_CHANNEL_FD,
            constants.ENV_NODE_CHANNEL_FD,
        ),
    )
    """Inherited socket descriptor for parent IPC, if launched by a parent."""

    # Logging
    log_level: _typing.Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    """Level for tscwatch's own diagnostics (stderr)."""

    @_pydantic.field_validator(
        "on_first_success",
        "on_success",
        "on_failure",
        "on_compilation_started",
        "on_compilation_complete",
        mode="after",
    )
    @classmethod
    def _blank_command_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @_pydantic.field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: _typing.Any) -> _typing.Any:
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args) - highest
        2. env_settings (TSCWATCH_* env vars)
        3. yaml config file
        4. (defaults via Field definitions) - lowest
        """
        config_path = resolve_config_path(_explicit_config_path.get())
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, config_path),
        )

    @classmethod
    def load(
        cls,
        config_file: _pathlib.Path | None = None,
        **overrides: _typing.Any,
    ) -> Settings:
        """
        Load settings, optionally from an explicit config file.

        Overrides whose value is None are dropped so they do not mask
        lower-precedence sources.

        Raises:
            ConfigFileError: If the config file is missing or invalid.
        """
        values = {key: value for key, value in overrides.items() if value is not None}
        token = _explicit_config_path.set(config_file)
        try:
            return cls(**values)
        finally:
            _explicit_config_path.reset(token)

    def hook_commands(self) -> dict[events.HookKind, str | None]:
        """Configured command for each hook kind."""
        return {kind: getattr(self, kind.setting_name) for kind in events.HookKind}
