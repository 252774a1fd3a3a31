"""Backend driver base class.

A backend is a thin, stateless driver around one package tool. It only knows:
1. which command line each step runs
2. how that command's exit codes map to a domain result

Execution itself is delegated to the ProcessRunner, and exit codes are looked
up in explicit per-step tables, so a new backend is added with data rather
than new control flow.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from ..runtime import CommandLocator, CommandSpec, ExitOutcome, Privilege, ProcessRunner

__all__ = [
    "Backend",
    "DomainResult",
    "ExitCodeTable",
    "Outcome",
    "Step",
    "UpdateMode",
    "interpret",
]

logger = logging.getLogger(__name__)

VERSION_TIMEOUT = 5.0


class UpdateMode(str, Enum):
    """How updates are applied.

    - IMMEDIATE: install now
    - OFFLINE: stage the transaction, apply it on next reboot
    """

    IMMEDIATE = "immediate"
    OFFLINE = "offline"

    @classmethod
    def from_answer(cls, answer: str) -> "UpdateMode":
        """Map an interactive answer to a mode.

        Only "now" (case and surrounding whitespace ignored) selects
        IMMEDIATE; anything else, including empty input, selects OFFLINE.
        """
        if answer.strip().lower() == "now":
            return cls.IMMEDIATE
        return cls.OFFLINE


class Outcome(str, Enum):
    """Business meaning of a finished step."""

    NOT_INSTALLED = "not_installed"
    NO_UPDATES = "no_updates"
    UPDATES_AVAILABLE = "updates_available"
    UPDATES_APPLIED = "updates_applied"
    REBOOT_REQUIRED = "reboot_required"
    NO_REBOOT_NEEDED = "no_reboot_needed"
    FAILED = "failed"


class Step(str, Enum):
    """Driver step, used in diagnostics."""

    CHECK = "check"
    APPLY = "apply"
    REBOOT_CHECK = "reboot check"


# Ordered (exit code, outcome) pairs; the first matching row wins
ExitCodeTable = tuple[tuple[int, Outcome], ...]


@dataclass(frozen=True)
class DomainResult:
    """Interpretation of one step.

    Attributes:
        outcome: What the step means
        step: Step that produced the result (None when nothing ran)
        mode: Update mode, for applied updates
        exit_code: Raw exit code (None if nothing ran or killed by a signal)
        cause: Diagnostic for failures, e.g. "unexpected exit code 3"
    """

    outcome: Outcome
    step: Step | None = None
    mode: UpdateMode | None = None
    exit_code: int | None = None
    cause: str = ""

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED

    @property
    def succeeded(self) -> bool:
        return not self.failed


def interpret(
    outcome: ExitOutcome,
    table: ExitCodeTable,
    step: Step,
    *,
    mode: UpdateMode | None = None,
) -> DomainResult:
    """Map an exit outcome to a domain result through ``table``.

    Codes missing from the table are failures carrying the raw code, never
    success. A timeout or a signal is always a failure.
    """
    if outcome.timed_out:
        return DomainResult(
            Outcome.FAILED, step, mode, outcome.code, cause=f"timed out ({outcome.describe()})"
        )
    if outcome.signal is not None:
        return DomainResult(Outcome.FAILED, step, mode, None, cause=outcome.describe())

    for code, mapped in table:
        if code == outcome.code:
            return DomainResult(
                mapped,
                step,
                mode if mapped is Outcome.UPDATES_APPLIED else None,
                outcome.code,
            )

    return DomainResult(
        Outcome.FAILED, step, mode, outcome.code, cause=f"unexpected {outcome.describe()}"
    )


class Backend(ABC):
    """Backend driver base class.

    Subclasses implement:
    - name / executable
    - apply_command()
    - optionally check_command() and reboot_command()

    and may override the exit-code tables.
    """

    CHECK_TABLE: ExitCodeTable = (
        (0, Outcome.NO_UPDATES),
        (100, Outcome.UPDATES_AVAILABLE),
    )
    APPLY_TABLE: ExitCodeTable = ((0, Outcome.UPDATES_APPLIED),)
    REBOOT_TABLE: ExitCodeTable = (
        (0, Outcome.NO_REBOOT_NEEDED),
        (1, Outcome.REBOOT_REQUIRED),
    )

    def __init__(
        self,
        runner: ProcessRunner,
        locator: CommandLocator,
        *,
        elevation: tuple[str, ...] = ("sudo",),
    ) -> None:
        """Initialize the driver.

        Args:
            runner: Runner executing the commands
            locator: Existence check for the executable
            elevation: Prefix for privileged commands
        """
        self._runner = runner
        self._locator = locator
        self._elevation = tuple(elevation)

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name (e.g. 'Flatpak')."""
        ...

    @property
    @abstractmethod
    def executable(self) -> str:
        ...

    @property
    def privilege(self) -> Privilege:
        return Privilege.NONE

    @property
    def supports_offline(self) -> bool:
        """Whether apply_command() honours UpdateMode.OFFLINE."""
        return False

    def command(self, *args: str) -> CommandSpec:
        """Build a command spec for this backend's executable."""
        return CommandSpec(
            executable=self.executable,
            args=args,
            privilege=self.privilege,
            elevation=self._elevation,
            label=self.name,
        )

    def check_command(self) -> CommandSpec | None:
        """Update check command; None when the backend has no check step."""
        return None

    @abstractmethod
    def apply_command(self, mode: UpdateMode) -> CommandSpec:
        ...

    def reboot_command(self) -> CommandSpec | None:
        return None

    def is_installed(self) -> bool:
        return self._locator.is_available(self.executable)

    async def check(self) -> DomainResult:
        """Check for updates: NO_UPDATES, UPDATES_AVAILABLE or FAILED.

        Without a check command the apply step decides, so updates are
        reported as available without running anything.
        """
        spec = self.check_command()
        if spec is None:
            return DomainResult(Outcome.UPDATES_AVAILABLE)
        return await self._run_step(spec, self.CHECK_TABLE, Step.CHECK)

    async def apply(self, mode: UpdateMode) -> DomainResult:
        return await self._run_step(self.apply_command(mode), self.APPLY_TABLE, Step.APPLY, mode=mode)

    async def needs_reboot(self) -> DomainResult:
        spec = self.reboot_command()
        if spec is None:
            return DomainResult(Outcome.NO_REBOOT_NEEDED)
        return await self._run_step(spec, self.REBOOT_TABLE, Step.REBOOT_CHECK)

    async def _run_step(
        self,
        spec: CommandSpec,
        table: ExitCodeTable,
        step: Step,
        *,
        mode: UpdateMode | None = None,
    ) -> DomainResult:
        logger.info(f"{self.name} {step.value}: {spec.display()}")
        outcome = await self._runner.run(spec)
        result = interpret(outcome, table, step, mode=mode)
        logger.info(
            f"{self.name} {step.value} finished with {outcome.describe()} "
            f"-> {result.outcome.value}"
        )
        return result

    def version(self) -> str:
        """Version string for the banner, "unknown" when it cannot be read."""
        try:
            result = subprocess.run(
                [self.executable, "--version"],
                capture_output=True,
                text=True,
                timeout=VERSION_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"{self.name} version probe failed: {e}")
            return "unknown"

        for line in result.stdout.splitlines():
            if line.strip():
                return line.strip()
        return "unknown"
