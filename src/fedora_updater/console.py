"""Console output sink shared by the stream readers and the orchestrator.

Every write goes through a single lock so that lines coming from the two
subprocess pipes are never interleaved mid-line.
"""

from __future__ import annotations

import sys
import threading
from enum import Enum
from typing import Protocol

from rich.console import Console
from rich.text import Text

__all__ = [
    "Channel",
    "ConsoleSink",
    "OutputSink",
]


class Channel(str, Enum):
    """Subprocess output channel."""

    STDOUT = "stdout"
    STDERR = "stderr"


class OutputSink(Protocol):
    """Destination for subprocess lines and status messages."""

    def stream_line(self, channel: Channel, line: str) -> None: ...

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def heading(self, message: str) -> None: ...

    def blank(self) -> None: ...


# Prefix styles for forwarded subprocess lines
CHANNEL_STYLES = {
    Channel.STDOUT: "blue",
    Channel.STDERR: "red",
}


class ConsoleSink:
    """Serialised, colour-coded console writer built on rich.

    Attributes:
        out: Console for normal output (stdout)
        err: Console for stderr lines and errors
    """

    def __init__(
        self,
        out: Console | None = None,
        err: Console | None = None,
        *,
        no_color: bool = False,
    ) -> None:
        self.out = out or Console(file=sys.stdout, no_color=no_color, highlight=False)
        self.err = err or Console(file=sys.stderr, no_color=no_color, highlight=False)
        self._lock = threading.Lock()

    def stream_line(self, channel: Channel, line: str) -> None:
        """Write one complete subprocess line with its channel prefix.

        The line is wrapped in a Text object so brackets in package names
        are never parsed as markup.
        """
        text = Text.assemble((f"[{channel.value}]", CHANNEL_STYLES[channel]), " ", line)
        console = self.err if channel is Channel.STDERR else self.out
        with self._lock:
            console.print(text, soft_wrap=True)

    def info(self, message: str) -> None:
        self._write(self.out, message, None)

    def success(self, message: str) -> None:
        self._write(self.out, message, "green")

    def warning(self, message: str) -> None:
        self._write(self.out, message, "yellow")

    def error(self, message: str) -> None:
        self._write(self.err, message, "bold red")

    def heading(self, message: str) -> None:
        self._write(self.out, message, "bold green")

    def blank(self) -> None:
        with self._lock:
            self.out.print()

    def ask(self, prompt: str) -> str:
        """Read one line from the user (raises EOFError on closed stdin)."""
        return self.out.input(Text(prompt, style="bold"))

    def _write(self, console: Console, message: str, style: str | None) -> None:
        with self._lock:
            console.print(Text(message, style=style or ""), soft_wrap=True)
