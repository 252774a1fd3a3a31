"""Process runner with concurrent, line-buffered output streaming.

fedora-updater runtime module

This module provides:
- Subprocess spawning from an immutable CommandSpec
- Two concurrent stream readers forwarding complete lines to a shared sink
- Exit outcome construction only after both pipes hit EOF and the process is reaped
- Optional timeout with graceful termination (SIGTERM -> timeout -> SIGKILL)
- Cancel-safe cleanup using asyncio.shield

Key design points:
- Readers split raw chunks on line boundaries before decoding, so a line is
  written whole or not at all; nothing is written byte by byte
- Waiting on the process alone is not enough: a descendant can still hold
  the pipes open after the direct child has exited
- A reader failure is reported and recorded, it never reaches the sibling
  reader or the waiting flow
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from signal import Signals

from ..console import Channel, OutputSink

__all__ = [
    "CommandSpec",
    "ExitOutcome",
    "LineBuffer",
    "Privilege",
    "ProcessRunner",
    "ProcessRunnerError",
    "SpawnError",
    "StreamError",
    "StreamReport",
]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL
DEFAULT_DRAIN_TIMEOUT = 1.0  # seconds readers get after a timed-out process was killed


class Privilege(str, Enum):
    """Privilege a command needs to run."""

    NONE = "none"
    ELEVATED = "elevated"


@dataclass(frozen=True)
class CommandSpec:
    """Specification for a subprocess to run.

    Elevation is part of the argument vector itself: the runner executes
    ``argv`` exactly as given and never prompts for or handles credentials.

    Attributes:
        executable: Program name, resolved on the search path
        args: Ordered arguments
        privilege: Whether the command needs elevation
        elevation: Prefix used when privilege is ELEVATED (empty = run as is)
        env: Environment variables (None = inherit parent)
        label: Human name used in diagnostics
    """

    executable: str
    args: tuple[str, ...] = ()
    privilege: Privilege = Privilege.NONE
    elevation: tuple[str, ...] = ("sudo",)
    env: Mapping[str, str] | None = None
    label: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "elevation", tuple(self.elevation))

    @property
    def argv(self) -> list[str]:
        """Exact argument vector handed to the OS."""
        command = [self.executable, *self.args]
        if self.privilege is Privilege.ELEVATED and self.elevation:
            return [*self.elevation, *command]
        return command

    @property
    def name(self) -> str:
        return self.label or self.executable

    def display(self) -> str:
        """Shell-quoted command line for messages and logs."""
        return shlex.join(self.argv)


@dataclass(frozen=True)
class StreamReport:
    """What one reader saw on its pipe."""

    channel: Channel
    lines: int = 0
    complete: bool = True
    error: str | None = None


@dataclass(frozen=True)
class ExitOutcome:
    """Terminal status of one subprocess run.

    Attributes:
        returncode: Return code as reported by asyncio (negative = killed by signal)
        streams_complete: Both pipes were drained to EOF without errors
        stream_errors: Diagnostics from the readers
        timed_out: The runner terminated the process after its timeout
    """

    returncode: int
    streams_complete: bool = True
    stream_errors: tuple[str, ...] = ()
    timed_out: bool = False

    @property
    def code(self) -> int | None:
        """Exit code, or None when the process was terminated by a signal."""
        return self.returncode if self.returncode >= 0 else None

    @property
    def signal(self) -> int | None:
        return -self.returncode if self.returncode < 0 else None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        if self.signal is not None:
            try:
                name = Signals(self.signal).name
            except ValueError:
                name = str(self.signal)
            return f"terminated by signal {name}"
        return f"exit code {self.returncode}"


class ProcessRunnerError(Exception):
    """Base class for failures of the runner itself."""


class SpawnError(ProcessRunnerError):
    """The subprocess could not be created."""

    def __init__(self, spec: CommandSpec, cause: OSError) -> None:
        self.spec = spec
        self.cause = cause
        reason = cause.strerror or str(cause)
        super().__init__(f"could not start '{spec.display()}': {reason}")


class StreamError(ProcessRunnerError):
    """A reader could not decode its pipe or the pipe broke before EOF."""

    def __init__(self, spec: CommandSpec, channel: Channel, detail: str) -> None:
        self.spec = spec
        self.channel = channel
        self.detail = detail
        super().__init__(f"{spec.name} {channel.value}: {detail} (command: {spec.display()})")


class LineBuffer:
    """Incremental splitter turning raw pipe chunks into complete lines."""

    def __init__(self) -> None:
        self._pending = bytearray()

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add a chunk and return every line it completed (without newline)."""
        self._pending.extend(chunk)
        end = self._pending.rfind(b"\n")
        if end < 0:
            return []
        complete = bytes(self._pending[:end])
        del self._pending[: end + 1]
        return complete.split(b"\n")

    def flush(self) -> bytes | None:
        """Return the unterminated tail, if any."""
        if not self._pending:
            return None
        tail = bytes(self._pending)
        self._pending.clear()
        return tail


@dataclass
class ProcessRunner:
    """Runs a command while streaming both of its pipes to a sink.

    Example:
        runner = ProcessRunner(sink=ConsoleSink())
        spec = CommandSpec("dnf5", ("--refresh", "check-upgrade"),
                           privilege=Privilege.ELEVATED)
        outcome = await runner.run(spec)
        if outcome.code == 100:
            ...
    """

    sink: OutputSink
    timeout: float | None = None
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    encoding: str = "utf-8"

    async def run(self, spec: CommandSpec) -> ExitOutcome:
        """Run ``spec`` to completion and return its outcome.

        1. Spawns the subprocess with both output pipes attached
        2. Starts one reader task per pipe
        3. Waits for process exit (bounded by ``timeout`` when set)
        4. Waits for both readers to reach end-of-stream
        5. Ensures cleanup even if cancelled

        A nonzero exit code is returned, never raised.

        Raises:
            SpawnError: If the subprocess cannot be created
        """
        process: asyncio.subprocess.Process | None = None
        readers: list[asyncio.Task[StreamReport]] = []
        timed_out = False

        try:
            process = await self._spawn(spec)

            readers = [
                asyncio.create_task(
                    self._pump(spec, process.stdout, Channel.STDOUT),
                    name=f"{spec.name}-stdout",
                ),
                asyncio.create_task(
                    self._pump(spec, process.stderr, Channel.STDERR),
                    name=f"{spec.name}-stderr",
                ),
            ]

            try:
                await self._wait_exit(process)
            except asyncio.TimeoutError:
                timed_out = True
                logger.warning(
                    f"Subprocess exceeded {self.timeout}s timeout pid={process.pid} "
                    f"argv={spec.display()}"
                )
                await self._terminate_process(process)

            reports = await self._join_readers(readers, bounded=timed_out)

        finally:
            await self._safe_cleanup(process, readers)

        returncode = process.returncode
        if returncode is None:
            logger.warning(f"Subprocess could not be reaped pid={process.pid}")
            returncode = -Signals.SIGKILL

        outcome = ExitOutcome(
            returncode=returncode,
            streams_complete=all(report.complete for report in reports),
            stream_errors=tuple(report.error for report in reports if report.error),
            timed_out=timed_out,
        )
        logger.debug(
            f"Subprocess completed pid={process.pid} returncode={returncode} "
            f"lines={[report.lines for report in reports]} "
            f"streams_complete={outcome.streams_complete}"
        )
        return outcome

    async def _spawn(self, spec: CommandSpec) -> asyncio.subprocess.Process:
        kwargs = {}
        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **kwargs,
            )
        except OSError as e:
            logger.debug(f"Spawn failed argv={spec.display()}: {e!r}")
            raise SpawnError(spec, e) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={spec.display()}")
        return process

    async def _wait_exit(self, process: asyncio.subprocess.Process) -> int:
        if self.timeout is None:
            return await process.wait()
        return await asyncio.wait_for(process.wait(), timeout=self.timeout)

    async def _join_readers(
        self,
        readers: list[asyncio.Task[StreamReport]],
        *,
        bounded: bool,
    ) -> list[StreamReport]:
        """Wait for both readers to hit EOF.

        After a timeout the readers only get ``drain_timeout`` seconds, since
        a surviving descendant may keep the pipes open indefinitely.
        """
        if not bounded:
            return list(await asyncio.gather(*readers))

        _, pending = await asyncio.wait(readers, timeout=self.drain_timeout)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        reports = []
        for task, channel in zip(readers, (Channel.STDOUT, Channel.STDERR)):
            if task.cancelled():
                reports.append(
                    StreamReport(channel, complete=False, error="not drained after timeout")
                )
            else:
                reports.append(task.result())
        return reports

    async def _pump(
        self,
        spec: CommandSpec,
        stream: asyncio.StreamReader | None,
        channel: Channel,
    ) -> StreamReport:
        """Drain one pipe, forwarding each complete line to the sink.

        The pipe is always read to EOF, even after the sink failed, so the
        child can never block on a full pipe.
        """
        if stream is None:
            return StreamReport(channel)

        buffer = LineBuffer()
        forwarded = 0
        errors: list[str] = []
        undecodable = 0
        sink_ok = True

        def forward(raw: bytes) -> None:
            nonlocal forwarded, undecodable, sink_ok
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            try:
                line = raw.decode(self.encoding)
            except UnicodeDecodeError as e:
                line = raw.decode(self.encoding, errors="replace")
                undecodable += 1
                if undecodable == 1:
                    detail = f"undecodable {self.encoding} output ({e.reason})"
                    errors.append(detail)
                    self._report(StreamError(spec, channel, detail))
            if not sink_ok:
                return
            try:
                self.sink.stream_line(channel, line)
                forwarded += 1
            except Exception as e:
                sink_ok = False
                detail = f"output sink failed: {e}"
                errors.append(detail)
                logger.warning(str(StreamError(spec, channel, detail)))

        try:
            while True:
                chunk = await stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                for raw in buffer.feed(chunk):
                    forward(raw)
        except OSError as e:
            detail = f"pipe closed unexpectedly: {e}"
            errors.append(detail)
            self._report(StreamError(spec, channel, detail))

        tail = buffer.flush()
        if tail is not None:
            forward(tail)

        if undecodable > 1:
            errors.append(f"{undecodable} lines contained undecodable bytes")

        return StreamReport(
            channel,
            lines=forwarded,
            complete=not errors,
            error="; ".join(errors) or None,
        )

    def _report(self, error: StreamError) -> None:
        """Surface a stream error on the sink right away."""
        logger.warning(str(error))
        try:
            self.sink.error(f"Stream error: {error}")
        except Exception as e:
            logger.debug(f"Could not write stream error to sink: {e}")

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
        readers: list[asyncio.Task[StreamReport]],
    ) -> None:
        """Cleanup shielded from cancellation of the calling task."""
        try:
            await asyncio.shield(self._do_cleanup(process, readers))
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self._do_cleanup(process, readers)
            raise

    async def _do_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
        readers: list[asyncio.Task[StreamReport]],
    ) -> None:
        # Terminate first so readers see EOF instead of being cut off
        if process is not None and process.returncode is None:
            await self._terminate_process(process)

        for task in readers:
            if not task.done():
                task.cancel()
        if readers:
            await asyncio.gather(*readers, return_exceptions=True)

    async def _terminate_process(self, process: asyncio.subprocess.Process) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (sudo relays it to the command it runs)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL
        4. Wait up to kill_timeout for forced exit
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            process.kill()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(f"Subprocess killed pid={pid} returncode={process.returncode}")
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")
        except OSError as e:
            logger.warning(f"Error terminating subprocess pid={pid}: {e}")
