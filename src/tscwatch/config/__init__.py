"""
Configuration module for tscwatch.

Uses pydantic-settings for environment variable loading.
"""

from tscwatch.config.settings import (
    ConfigFileError,
    Settings,
    load_config_file,
    resolve_config_path,
)

__all__ = ["ConfigFileError", "Settings", "load_config_file", "resolve_config_path"]
