"""Command line supervisor.

Usage:
    procwatch [--name NAME] [--start-check TEXT] [--start-check-timeout SECONDS]
              [-v] -- COMMAND [ARGS...]

SIGINT/SIGTERM received by procwatch are forwarded to the child. Exit
status: 0 on success, the child's code on a non-zero exit (128+N when it
died from signal N), 124 when the start check timed out, 127 when the
command could not be started.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .errors import AbnormalExit, ReadinessTimeout, RunnerError, StartFailure
from .process import Process, launch
from .runner import Runner, RunnerConfig
from .runtime.process_runner import IS_WINDOWS, ProcessSpec

__all__ = ["build_parser", "exit_status", "main", "supervise"]

logger = logging.getLogger(__name__)

EXIT_READINESS_TIMEOUT = 124
EXIT_START_FAILURE = 127

_FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procwatch",
        description="Run a command, wait for it to become ready, and report how it ended.",
    )
    parser.add_argument("--name", default=None, help="Label for log lines (default: command name)")
    parser.add_argument("--start-check", default="", help="Text that marks a successful start")
    parser.add_argument(
        "--start-check-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the start check (default: PROCWATCH_START_CHECK_TIMEOUT or 5)",
    )
    parser.add_argument("--cwd", type=Path, default=None, help="Working directory for the command")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run (after --)")
    return parser


def exit_status(status: Optional[RunnerError]) -> int:
    """Map a run outcome to a shell exit status."""
    if status is None:
        return 0
    if isinstance(status, AbnormalExit):
        if status.exit_code < 0:
            return 128 - status.exit_code
        return status.exit_code
    if isinstance(status, ReadinessTimeout):
        return EXIT_READINESS_TIMEOUT
    if isinstance(status, StartFailure):
        return EXIT_START_FAILURE
    return 1


async def _report_ready(process: Process) -> None:
    await process.ready()
    logger.info(f"Process '{process.name}' is ready")


async def supervise(config: RunnerConfig) -> Optional[RunnerError]:
    """Supervise one command until it exits, forwarding SIGINT/SIGTERM."""
    process = launch(Runner(config))
    loop = asyncio.get_running_loop()

    installed: list[int] = []
    if not IS_WINDOWS:
        for sig in _FORWARDED_SIGNALS:
            loop.add_signal_handler(sig, process.signal, sig)
            installed.append(sig)

    reporter = asyncio.create_task(_report_ready(process))
    try:
        return await process.wait()
    finally:
        reporter.cancel()
        for sig in installed:
            loop.remove_signal_handler(sig)


def _setup_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[handler],
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("a command to run is required")

    _setup_logging(args.verbose)

    config = RunnerConfig(
        name=args.name or os.path.basename(command[0]),
        command=ProcessSpec(argv=command, cwd=args.cwd),
        start_check=args.start_check,
        start_check_timeout=args.start_check_timeout,
    )

    status = asyncio.run(supervise(config))
    if status is not None:
        logger.error(str(status))
    return exit_status(status)
