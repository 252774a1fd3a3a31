"""Runtime module for subprocess execution and output streaming.

This module spawns the backend tools, streams both of their output pipes
concurrently to a shared sink and reports how each run ended.
"""

from __future__ import annotations

from .locator import CommandLocator
from .process_runner import (
    CommandSpec,
    ExitOutcome,
    Privilege,
    ProcessRunner,
    ProcessRunnerError,
    SpawnError,
    StreamError,
)

__all__ = [
    "CommandLocator",
    "CommandSpec",
    "ExitOutcome",
    "Privilege",
    "ProcessRunner",
    "ProcessRunnerError",
    "SpawnError",
    "StreamError",
]
