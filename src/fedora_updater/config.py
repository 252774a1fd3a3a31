"""Environment-based configuration.

Environment variables:
    FEDORA_UPDATER_BACKENDS: backends to run
        - empty/unset = all (flatpak, dnf5)
        - comma separated, case-insensitive, unknown names ignored
        - e.g. "dnf5" or "Flatpak, DNF5"

    FEDORA_UPDATER_ELEVATION: command prefixed to privileged commands
        - default "sudo"
        - may contain arguments, e.g. "sudo -A"
        - empty = run privileged commands as is

    FEDORA_UPDATER_TIMEOUT: per-subprocess timeout in seconds
        - unset/empty/0/invalid = no timeout (default)

    FEDORA_UPDATER_NO_COLOR: disable colored output
        - true/1/yes = plain text
        - false/0/no = colors (default)

    FEDORA_UPDATER_LOG_DEBUG: debug log mode
        - true/1/yes = debug log written to a temp file
        - false/0/no = warnings only, to stderr (default)
"""

from __future__ import annotations

import os
import shlex
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config", "SUPPORTED_BACKENDS"]

# Backends in the order they run
SUPPORTED_BACKENDS = ("flatpak", "dnf5")

DEFAULT_ELEVATION = ("sudo",)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_backend_list(value: str | None) -> tuple[str, ...]:
    """Parse the backend allow-list, keeping run order.

    Args:
        value: Comma separated names, case-insensitive

    Returns:
        Enabled backends in run order; all of them when nothing valid is given
    """
    if not value or not value.strip():
        return SUPPORTED_BACKENDS

    requested = {item.strip().lower() for item in value.split(",")}
    enabled = tuple(name for name in SUPPORTED_BACKENDS if name in requested)
    return enabled or SUPPORTED_BACKENDS


def _parse_elevation(value: str | None) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_ELEVATION
    return tuple(shlex.split(value))


def _parse_timeout(value: str | None) -> float | None:
    if not value:
        return None
    try:
        timeout = float(value)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


@dataclass
class Config:
    """fedora-updater configuration.

    Attributes:
        backends: Enabled backends, in run order
        elevation: Prefix for privileged commands (empty = none)
        timeout: Per-subprocess timeout in seconds (None = wait forever)
        no_color: Plain text output
        log_debug: Debug log to a temp file
        log_file: Log file path (set automatically when log_debug=True)
    """

    backends: tuple[str, ...] = SUPPORTED_BACKENDS
    elevation: tuple[str, ...] = DEFAULT_ELEVATION
    timeout: float | None = None
    no_color: bool = False
    log_debug: bool = False
    log_file: str | None = None

    def is_backend_enabled(self, name: str) -> bool:
        return name.lower() in self.backends

    def effective_elevation(self) -> tuple[str, ...]:
        """Elevation prefix, dropped when already running as root."""
        geteuid = getattr(os, "geteuid", None)
        if geteuid is not None and geteuid() == 0:
            return ()
        return self.elevation

    def __repr__(self) -> str:
        return (
            f"Config(backends={','.join(self.backends)}, "
            f"elevation={' '.join(self.elevation) or 'none'}, "
            f"timeout={self.timeout}, "
            f"no_color={self.no_color}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "fedora-updater"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"fedora_updater_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from the environment."""
    log_debug = _parse_bool(os.environ.get("FEDORA_UPDATER_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        backends=_parse_backend_list(os.environ.get("FEDORA_UPDATER_BACKENDS")),
        elevation=_parse_elevation(os.environ.get("FEDORA_UPDATER_ELEVATION")),
        timeout=_parse_timeout(os.environ.get("FEDORA_UPDATER_TIMEOUT")),
        no_color=_parse_bool(os.environ.get("FEDORA_UPDATER_NO_COLOR"), default=False),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global config instance (lazily loaded)
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration (used by tests)."""
    global _config
    _config = load_config()
    return _config
