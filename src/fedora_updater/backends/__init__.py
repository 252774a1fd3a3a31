"""Backend drivers.

Drivers are stateless: they build command specs and interpret exit codes.

Usage:
    from fedora_updater.backends import create_backend

    backend = create_backend("dnf5", runner, locator)
    if backend.is_installed():
        result = await backend.check()
"""

from __future__ import annotations

from ..runtime import CommandLocator, ProcessRunner
from .base import Backend, DomainResult, ExitCodeTable, Outcome, Step, UpdateMode, interpret
from .dnf5 import Dnf5Backend
from .flatpak import FlatpakBackend

__all__ = [
    # Base class and results
    "Backend",
    "DomainResult",
    "ExitCodeTable",
    "Outcome",
    "Step",
    "UpdateMode",
    "interpret",
    # Concrete drivers
    "Dnf5Backend",
    "FlatpakBackend",
    # Factory
    "BACKEND_ORDER",
    "create_backend",
]

# Run order: user-level applications first, then system packages
BACKEND_ORDER = ("flatpak", "dnf5")

_BACKENDS: dict[str, type[Backend]] = {
    "flatpak": FlatpakBackend,
    "dnf5": Dnf5Backend,
}


def create_backend(
    name: str,
    runner: ProcessRunner,
    locator: CommandLocator,
    *,
    elevation: tuple[str, ...] = ("sudo",),
) -> Backend:
    """Create a backend driver.

    Args:
        name: Backend name (flatpak, dnf5)
        runner: Runner executing the commands
        locator: Existence check
        elevation: Prefix for privileged commands

    Returns:
        The driver instance

    Raises:
        ValueError: Unsupported backend name
    """
    backend_cls = _BACKENDS.get(name.lower())
    if backend_cls is None:
        raise ValueError(f"Unsupported backend: {name}")
    return backend_cls(runner, locator, elevation=elevation)
