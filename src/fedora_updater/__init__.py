"""fedora-updater - Flatpak and DNF5 updates in one command.

Environment variables:
    FEDORA_UPDATER_BACKENDS: backends to run (empty = all)
    FEDORA_UPDATER_ELEVATION: prefix for privileged commands (default "sudo")
    FEDORA_UPDATER_TIMEOUT: per-subprocess timeout in seconds (default none)
    FEDORA_UPDATER_LOG_DEBUG: debug log to a temp file (default false)

Usage:
    fedora-updater [update] [-i]
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
