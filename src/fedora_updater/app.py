"""fedora-updater application entry point.

Parses the command line, sets up logging and wires the sink, runner,
backends and orchestrator together.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from . import __version__
from .backends import create_backend
from .config import Config, get_config
from .console import ConsoleSink
from .orchestrator import ExitStatus, RunReport, UpdateOrchestrator
from .runtime import CommandLocator, ProcessRunner

__all__ = ["build_parser", "configure_logging", "main", "run_update"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# 128 + SIGINT(2)
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fedora-updater",
        description="A command-line utility to update Fedora systems through Flatpak and DNF5",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["update"],
        default="update",
        help="Action to run (default: update)",
    )
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Enable interactive mode for choosing update type",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Write debug logs to stderr",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(config: Config, *, verbose: bool = False) -> None:
    """Configure log handlers for the fedora_updater namespace.

    - log_debug: DEBUG to a temp file
    - verbose: DEBUG to stderr, alongside the file when both are set
    - default: WARNING to stderr, so logs do not mix with console output
    """
    handlers: list[logging.Handler] = []
    if config.log_debug and config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))
    if verbose or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    debug = verbose or (config.log_debug and bool(config.log_file))
    # Root logger (third-party libraries) stays at WARNING
    logging.basicConfig(level=logging.WARNING, handlers=handlers, force=True)
    logging.getLogger("fedora_updater").setLevel(logging.DEBUG if debug else logging.WARNING)


async def run_update(config: Config, sink: ConsoleSink, *, interactive: bool = False) -> RunReport:
    """Build the backends from ``config`` and run every update."""
    runner = ProcessRunner(sink=sink, timeout=config.timeout)
    locator = CommandLocator()
    elevation = config.effective_elevation()

    backends = [
        create_backend(name, runner, locator, elevation=elevation)
        for name in config.backends
    ]
    orchestrator = UpdateOrchestrator(
        backends,
        sink,
        interactive=interactive,
        prompt=sink.ask,
    )
    return await orchestrator.run()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(config, verbose=args.verbose)

    sink = ConsoleSink(no_color=config.no_color)
    logger.info(f"Starting fedora-updater {__version__}: {config}")
    if config.log_file:
        sink.info(f"Debug log: {config.log_file}")

    try:
        report = asyncio.run(run_update(config, sink, interactive=args.interactive))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sink.error("Interrupted.")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        logger.exception("Unhandled error during update")
        sink.error(f"Error: internal failure: {type(e).__name__}: {e}")
        sys.exit(int(ExitStatus.FAILED))

    logger.info(f"Finished with status {report.exit_status.name}")
    sys.exit(int(report.exit_status))


if __name__ == "__main__":
    main()
