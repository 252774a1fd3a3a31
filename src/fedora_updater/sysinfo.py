"""System information shown before updating.

Every lookup degrades to "unknown"; none of them can fail the run.
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .backends import Backend

__all__ = ["SystemInfo", "collect_system_info", "distribution_name", "kernel_release"]

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")
UNKNOWN = "unknown"


def distribution_name(os_release: Path = OS_RELEASE) -> str:
    """PRETTY_NAME from os-release, without quotes."""
    try:
        content = os_release.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug(f"Cannot read {os_release}: {e}")
        return UNKNOWN

    for line in content.splitlines():
        if line.startswith("PRETTY_NAME="):
            value = line.split("=", 1)[1].strip().strip("\"'")
            return value or UNKNOWN
    return UNKNOWN


def kernel_release() -> str:
    release = platform.release()
    return release or UNKNOWN


@dataclass
class SystemInfo:
    """Snapshot printed in the banner.

    Attributes:
        distribution: Distribution pretty name
        kernel: Kernel release
        tools: Installed backend name -> version string
    """

    distribution: str = UNKNOWN
    kernel: str = UNKNOWN
    tools: dict[str, str] = field(default_factory=dict)

    def lines(self) -> list[str]:
        lines = [f"Distribution: {self.distribution}", f"Kernel: {self.kernel}"]
        lines.extend(f"{name}: {version}" for name, version in self.tools.items())
        return lines


def collect_system_info(backends: Iterable[Backend]) -> SystemInfo:
    """Gather distribution, kernel and installed backend versions."""
    info = SystemInfo(distribution=distribution_name(), kernel=kernel_release())
    for backend in backends:
        if backend.is_installed():
            info.tools[backend.name] = backend.version()
    return info
