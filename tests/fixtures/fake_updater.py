#!/usr/bin/env python3
"""Fake updater for stream tests.

This script simulates a package tool writing to stdout and stderr at the
same time. Lines can be written in several partial writes to exercise line
reassembly, and output can continue after the process itself has exited.

Usage:
    python fake_updater.py [--lines N] [--stderr-lines N] [--interval SECONDS]
                           [--split] [--width N] [--exit-code CODE]
                           [--late-delay SECONDS]

Arguments:
    --lines: Number of stdout lines (default: 50)
    --stderr-lines: Number of stderr lines (default: 50)
    --interval: Sleep between lines (default: 0)
    --split: Write every line in two halves with a flush in between
    --width: Padding added to every line (default: 40)
    --exit-code: Exit code (default: 0)
    --late-delay: Fork a child that writes "late-out"/"late-err" this many
        seconds after the parent exited (default: disabled)

Line format:
    out-0001 xxxx...   (stdout)
    err-0001 xxxx...   (stderr)
"""

from __future__ import annotations

import argparse
import os
import sys
import threading
import time
from typing import NoReturn


def make_line(prefix: str, index: int, width: int) -> bytes:
    return f"{prefix}-{index:04d} {'x' * width}\n".encode()


def write_lines(fd: int, prefix: str, count: int, width: int, split: bool, interval: float) -> None:
    """Write ``count`` lines to ``fd`` with raw os.write calls."""
    for index in range(1, count + 1):
        line = make_line(prefix, index, width)
        if split:
            half = len(line) // 2
            os.write(fd, line[:half])
            time.sleep(0.0005)
            os.write(fd, line[half:])
        else:
            os.write(fd, line)
        if interval:
            time.sleep(interval)


def main() -> NoReturn:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Fake updater for testing")
    parser.add_argument("--lines", type=int, default=50, help="stdout lines")
    parser.add_argument("--stderr-lines", type=int, default=50, help="stderr lines")
    parser.add_argument("--interval", type=float, default=0.0, help="Sleep between lines")
    parser.add_argument("--split", action="store_true", help="Write lines in two halves")
    parser.add_argument("--width", type=int, default=40, help="Line padding")
    parser.add_argument("--exit-code", type=int, default=0, help="Exit code")
    parser.add_argument("--late-delay", type=float, default=None, help="Output after exit")
    args = parser.parse_args()

    # Both streams are written at the same time from two threads
    writers = [
        threading.Thread(
            target=write_lines,
            args=(1, "out", args.lines, args.width, args.split, args.interval),
        ),
        threading.Thread(
            target=write_lines,
            args=(2, "err", args.stderr_lines, args.width, args.split, args.interval),
        ),
    ]
    for writer in writers:
        writer.start()
    for writer in writers:
        writer.join()

    if args.late_delay is not None:
        if os.fork() == 0:
            # Child keeps the inherited pipes open after the parent exits
            time.sleep(args.late_delay)
            os.write(1, b"late-out\n")
            os.write(2, b"late-err\n")
            os._exit(0)

    sys.stdout.flush()
    os._exit(args.exit_code)


if __name__ == "__main__":
    main()
