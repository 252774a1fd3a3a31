"""Flatpak backend driver."""

from __future__ import annotations

from ..runtime import CommandSpec
from .base import Backend, UpdateMode

__all__ = ["FlatpakBackend"]


class FlatpakBackend(Backend):
    """User-level application updates through flatpak.

    Flatpak has no separate check step here and no offline mode: the
    update command is the only command, and it always applies immediately.
    """

    @property
    def name(self) -> str:
        return "Flatpak"

    @property
    def executable(self) -> str:
        return "flatpak"

    def apply_command(self, mode: UpdateMode) -> CommandSpec:
        return self.command("update", "-y")
