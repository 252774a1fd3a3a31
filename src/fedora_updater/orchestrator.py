"""Update orchestration.

Runs the backends one after another (each finishes before the next one
starts), selects the update mode once per run, and folds the per-backend
results into a final report and process exit status.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum

import anyio
from anyio.lowlevel import checkpoint

from .backends import Backend, DomainResult, Outcome, Step, UpdateMode
from .console import OutputSink
from .runtime import SpawnError
from .sysinfo import SystemInfo, collect_system_info

__all__ = ["BackendReport", "ExitStatus", "RunReport", "UpdateOrchestrator"]

logger = logging.getLogger(__name__)

BANNER_RULE = "─" * 29


class ExitStatus(IntEnum):
    """Process exit status of a run.

    - OK: every installed backend succeeded (or none is installed)
    - FAILED: every installed backend failed
    - PARTIAL: at least one backend failed while another succeeded
    """

    OK = 0
    FAILED = 1
    PARTIAL = 2


@dataclass
class BackendReport:
    """Final state of one backend.

    Attributes:
        name: Backend display name
        result: Result of the last decisive step
        reboot: Result of the reboot check, when one ran
        checked: A check step confirmed updates before they were applied
    """

    name: str
    result: DomainResult
    reboot: DomainResult | None = None
    checked: bool = True

    @property
    def installed(self) -> bool:
        return self.result.outcome is not Outcome.NOT_INSTALLED

    @property
    def failed(self) -> bool:
        return self.result.failed

    @property
    def applied(self) -> bool:
        return self.result.outcome is Outcome.UPDATES_APPLIED

    @property
    def updated(self) -> bool:
        """Updates were known to exist and were applied.

        An update command run without a check step may have had nothing to do.
        """
        return self.applied and self.checked

    @property
    def mode(self) -> UpdateMode | None:
        return self.result.mode

    @property
    def reboot_required(self) -> bool:
        return self.reboot is not None and self.reboot.outcome is Outcome.REBOOT_REQUIRED

    def summary(self) -> str:
        result = self.result
        if result.outcome is Outcome.NOT_INSTALLED:
            return f"{self.name}: skipped (not installed)"
        if result.outcome is Outcome.NO_UPDATES:
            return f"{self.name}: up to date"
        if result.failed:
            step = f" during {result.step.value}" if result.step else ""
            return f"{self.name}: failed{step} ({result.cause})"
        if self.applied and self.mode is UpdateMode.OFFLINE:
            return f"{self.name}: updates staged for next reboot"
        if self.reboot_required:
            return f"{self.name}: updated, reboot required"
        if not self.checked:
            return f"{self.name}: update ran"
        return f"{self.name}: updated"


@dataclass
class RunReport:
    """Aggregated result of a whole run."""

    backends: list[BackendReport] = field(default_factory=list)

    @property
    def installed(self) -> list[BackendReport]:
        return [report for report in self.backends if report.installed]

    @property
    def failed(self) -> list[BackendReport]:
        return [report for report in self.backends if report.failed]

    @property
    def succeeded(self) -> list[BackendReport]:
        return [report for report in self.installed if not report.failed]

    @property
    def updated(self) -> bool:
        return any(report.updated for report in self.backends)

    @property
    def applied(self) -> bool:
        return any(report.applied for report in self.backends)

    @property
    def reboot_required(self) -> bool:
        return any(report.reboot_required for report in self.backends)

    @property
    def exit_status(self) -> ExitStatus:
        if not self.failed:
            return ExitStatus.OK
        if self.succeeded:
            return ExitStatus.PARTIAL
        return ExitStatus.FAILED


def _names(reports: Sequence[BackendReport]) -> str:
    return " and ".join(report.name for report in reports)


@contextmanager
def interruptible() -> Iterator[None]:
    """Make Ctrl+C raise KeyboardInterrupt inside a blocking prompt.

    The asyncio SIGINT handler only schedules cancellation of the main task,
    which a read blocking the event loop thread never observes. The original
    handler is restored afterwards.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    original_handler = signal.signal(signal.SIGINT, signal.default_int_handler)
    try:
        yield
    finally:
        if original_handler is not None:
            signal.signal(signal.SIGINT, original_handler)


class UpdateOrchestrator:
    """Sequential driver of all backends.

    Example:
        orchestrator = UpdateOrchestrator(backends, sink, interactive=True, prompt=sink.ask)
        report = await orchestrator.run()
        sys.exit(report.exit_status)
    """

    def __init__(
        self,
        backends: Sequence[Backend],
        sink: OutputSink,
        *,
        interactive: bool = False,
        prompt: Callable[[str], str] = input,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            backends: Drivers in run order
            sink: Console sink for status messages
            interactive: Ask for the update mode instead of using IMMEDIATE
            prompt: Reads one answer from the user
        """
        self.backends = list(backends)
        self.sink = sink
        self.interactive = interactive
        self._prompt = prompt
        self._mode: UpdateMode | None = None

    @property
    def mode(self) -> UpdateMode | None:
        """Update mode of this run, once selected."""
        return self._mode

    async def run(self) -> RunReport:
        """Update every backend and print the final summary."""
        self.sink.heading("Fedora Updater")
        self.sink.info(BANNER_RULE)
        self.sink.blank()

        # Version probes are blocking subprocess calls
        info = await anyio.to_thread.run_sync(collect_system_info, self.backends)
        self._print_system_info(info)

        self.sink.blank()
        self.sink.success("Starting update process...")

        report = RunReport()
        for backend in self.backends:
            backend_report = await self._run_backend(backend)
            logger.info(f"Backend finished: {backend_report.summary()}")
            report.backends.append(backend_report)

        self._print_summary(report)
        return report

    def _print_system_info(self, info: SystemInfo) -> None:
        self.sink.heading("System Information:")
        for line in info.lines():
            self.sink.info(line)

    async def _run_backend(self, backend: Backend) -> BackendReport:
        if not backend.is_installed():
            self.sink.warning(
                f"{backend.name} is not installed. Skipping {backend.name} updates."
            )
            return BackendReport(backend.name, DomainResult(Outcome.NOT_INSTALLED))

        step = Step.CHECK
        try:
            if backend.check_command() is not None:
                self.sink.success(f"Checking for {backend.name} updates...")
            check = await backend.check()
            if check.failed:
                return self._failed(backend, check)
            if check.outcome is Outcome.NO_UPDATES:
                self.sink.success(f"No {backend.name} updates available.")
                return BackendReport(backend.name, check)

            step = Step.APPLY
            if backend.check_command() is not None:
                self.sink.success(f"{backend.name} updates are available.")
            mode = await self._select_mode() if backend.supports_offline else UpdateMode.IMMEDIATE
            self.sink.success(self._apply_message(backend, mode))
            applied = await backend.apply(mode)
        except SpawnError as e:
            return self._failed(
                backend, DomainResult(Outcome.FAILED, step, cause=str(e))
            )

        if applied.failed:
            return self._failed(backend, applied)

        if mode is UpdateMode.OFFLINE:
            self.sink.warning(
                "Offline update prepared. Changes will be applied on next reboot."
            )
            return BackendReport(backend.name, applied)

        self.sink.success(f"{backend.name} update completed.")
        return BackendReport(
            backend.name,
            applied,
            reboot=await self._check_reboot(backend),
            checked=backend.check_command() is not None,
        )

    async def _check_reboot(self, backend: Backend) -> DomainResult | None:
        """Reboot check after an immediate update; failures only warn."""
        if backend.reboot_command() is None:
            return None

        try:
            reboot = await backend.needs_reboot()
        except SpawnError as e:
            reboot = DomainResult(Outcome.FAILED, Step.REBOOT_CHECK, cause=str(e))

        if reboot.failed:
            self.sink.warning(
                f"Warning: Could not determine if restart is needed "
                f"({backend.name} {Step.REBOOT_CHECK.value}: {reboot.cause})."
            )
        elif reboot.outcome is Outcome.REBOOT_REQUIRED:
            self.sink.warning(f"{backend.name}: a reboot is required.")
        return reboot

    async def _select_mode(self) -> UpdateMode:
        """Pick the update mode, asking at most once per run."""
        if self._mode is not None:
            return self._mode

        if not self.interactive:
            self._mode = UpdateMode.IMMEDIATE
        else:
            self.sink.blank()
            self.sink.info("Choose update mode:")
            self.sink.info("1. Immediate update (type 'now')")
            self.sink.info("2. Offline update (press Enter)")
            try:
                with interruptible():
                    answer = self._prompt("> ")
            except EOFError:
                answer = ""
            # Deliver a cancellation requested before the handler swap
            await checkpoint()
            self._mode = UpdateMode.from_answer(answer)

        logger.info(f"Update mode: {self._mode.value}")
        return self._mode

    @staticmethod
    def _apply_message(backend: Backend, mode: UpdateMode) -> str:
        if not backend.supports_offline:
            return f"Updating {backend.name} packages..."
        if mode is UpdateMode.OFFLINE:
            return f"Preparing offline {backend.name} update..."
        return f"Performing immediate {backend.name} update..."

    def _failed(self, backend: Backend, result: DomainResult) -> BackendReport:
        step = result.step.value if result.step else "update"
        self.sink.error(f"{backend.name} {step} failed: {result.cause}")
        logger.error(f"{backend.name} {step} failed: {result.cause}")
        return BackendReport(backend.name, result)

    def _print_summary(self, report: RunReport) -> None:
        self.sink.blank()
        for backend_report in report.backends:
            self.sink.info(backend_report.summary())
        self.sink.blank()

        status = report.exit_status
        if status is ExitStatus.OK:
            if not report.installed:
                self.sink.warning("No supported package manager found. Nothing was updated.")
            elif report.updated:
                self.sink.heading("Updates were successfully installed!")
            elif report.applied:
                self.sink.heading("Update completed.")
            else:
                self.sink.heading("System is up to date. No updates needed.")
        elif status is ExitStatus.PARTIAL:
            self.sink.warning(
                f"Warning: {_names(report.failed)} updates failed, "
                f"but {_names(report.succeeded)} updates succeeded."
            )
        elif len(report.failed) > 1:
            self.sink.error("Error: All update mechanisms failed.")
        else:
            self.sink.error(f"Error: {_names(report.failed)} updates failed.")

        if report.reboot_required:
            self.sink.warning("A reboot is required to complete the update.")
