"""
Shared constants for tscwatch.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Watched tool defaults
DEFAULT_COMPILER = "typescript/bin/tsc"
"""Compiler module resolved through node_modules, like node's require.resolve."""

NODE_EXECUTABLE = "node"
"""Executable used to run the compiler script."""

# Hook process defaults
DEFAULT_KILL_TIMEOUT = 5.0
"""Seconds to wait after SIGTERM before a hook's process group gets SIGKILL."""

# Configuration
CONFIG_FILE_NAME = "tscwatch.yaml"
"""Project config file looked up in the working directory."""

ENV_PREFIX = "TSCWATCH_"
"""Prefix for environment variable overrides."""

ENV_CONFIG_FILE = "TSCWATCH_CONFIG"
"""Environment variable naming an explicit config file."""

ENV_CHANNEL_FD = "TSCWATCH_CHANNEL_FD"
"""Environment variable carrying the inherited IPC socket descriptor."""

ENV_NODE_CHANNEL_FD = "NODE_CHANNEL_FD"
"""Descriptor variable set by node's child_process.fork; accepted as a fallback."""

# Exit codes
EXIT_COMPILER_NOT_FOUND = 9
"""Exit status when the compiler executable cannot be resolved."""

EXIT_CONFIG_ERROR = 2
"""Exit status for an unreadable or invalid config file."""

CHANNEL_ENV_VARS = (ENV_CHANNEL_FD, ENV_NODE_CHANNEL_FD, "NODE_CHANNEL_SERIALIZATION_MODE")
"""IPC variables that must not leak into the compiler or hook processes."""
