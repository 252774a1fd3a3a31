"""DNF5 backend driver."""

from __future__ import annotations

from ..runtime import CommandSpec, Privilege
from .base import Backend, ExitCodeTable, Outcome, UpdateMode

__all__ = ["Dnf5Backend"]


class Dnf5Backend(Backend):
    """System package updates through dnf5, run with elevation.

    Exit codes:
    - check-upgrade: 0 = up to date, 100 = updates available
    - upgrade: 0 = applied
    - needs-restarting: 0 = no reboot needed, 1 = reboot required
    """

    CHECK_TABLE: ExitCodeTable = (
        (0, Outcome.NO_UPDATES),
        (100, Outcome.UPDATES_AVAILABLE),
    )
    REBOOT_TABLE: ExitCodeTable = (
        (0, Outcome.NO_REBOOT_NEEDED),
        (1, Outcome.REBOOT_REQUIRED),
    )

    @property
    def name(self) -> str:
        return "DNF5"

    @property
    def executable(self) -> str:
        return "dnf5"

    @property
    def privilege(self) -> Privilege:
        return Privilege.ELEVATED

    @property
    def supports_offline(self) -> bool:
        return True

    def check_command(self) -> CommandSpec:
        return self.command("--refresh", "check-upgrade")

    def apply_command(self, mode: UpdateMode) -> CommandSpec:
        if mode is UpdateMode.OFFLINE:
            return self.command("upgrade", "--offline", "-y")
        return self.command("upgrade", "-y")

    def reboot_command(self) -> CommandSpec:
        return self.command("needs-restarting")
