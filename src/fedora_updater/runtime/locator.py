"""Executable lookup on the search path."""

from __future__ import annotations

import logging
import shutil

__all__ = ["CommandLocator"]

logger = logging.getLogger(__name__)


class CommandLocator:
    """Caches whether commands can be found on PATH for the current run.

    The check happens before any run so a missing tool ("not installed")
    is never confused with a tool that failed.
    """

    def __init__(self, path: str | None = None) -> None:
        """Initialize the locator.

        Args:
            path: Search path override (None = the PATH environment variable)
        """
        self._path = path
        self._cache: dict[str, str | None] = {}

    def locate(self, command: str) -> str | None:
        """Return the resolved path of ``command`` or None."""
        if command not in self._cache:
            resolved = shutil.which(command, path=self._path)
            self._cache[command] = resolved
            logger.debug(f"Located {command!r}: {resolved or 'not found'}")
        return self._cache[command]

    def is_available(self, command: str) -> bool:
        return self.locate(command) is not None
