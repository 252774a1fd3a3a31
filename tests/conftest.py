"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import stat
import sys
import threading
from collections.abc import Callable
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from fedora_updater.console import Channel  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_UPDATER = FIXTURES_DIR / "fake_updater.py"


class RecordingSink:
    """In-memory sink recording forwarded lines and status messages."""

    def __init__(self) -> None:
        self.lines: list[tuple[Channel, str]] = []
        self.messages: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def stream_line(self, channel: Channel, line: str) -> None:
        with self._lock:
            self.lines.append((channel, line))

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def heading(self, message: str) -> None:
        self.messages.append(("heading", message))

    def blank(self) -> None:
        pass

    def lines_for(self, channel: Channel) -> list[str]:
        return [line for ch, line in self.lines if ch is channel]

    @property
    def stdout(self) -> list[str]:
        return self.lines_for(Channel.STDOUT)

    @property
    def stderr(self) -> list[str]:
        return self.lines_for(Channel.STDERR)

    def messages_at(self, level: str) -> list[str]:
        return [message for lvl, message in self.messages if lvl == level]

    def text(self) -> str:
        return "\n".join(message for _, message in self.messages)


@pytest.fixture
def sink() -> RecordingSink:
    """Fresh recording sink."""
    return RecordingSink()


@pytest.fixture
def fake_updater() -> list[str]:
    """argv prefix running the fake updater script."""
    return [sys.executable, str(FAKE_UPDATER)]


@pytest.fixture
def tool_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Directory that is the only entry on PATH.

    Real flatpak/dnf5 installations on the test machine are hidden, so
    only tools installed through ``install_tool`` exist.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", str(bin_dir))
    return bin_dir


@pytest.fixture
def install_tool(tool_dir: Path) -> Callable[[str, str], Path]:
    """Install a fake ``/bin/sh`` tool into ``tool_dir``.

    Scripts may only use shell builtins, since PATH contains nothing else.
    """

    def _install(name: str, body: str) -> Path:
        script = tool_dir / name
        script.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _install


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every FEDORA_UPDATER_* variable."""
    for key in list(os.environ):
        if key.startswith("FEDORA_UPDATER_"):
            monkeypatch.delenv(key, raising=False)
