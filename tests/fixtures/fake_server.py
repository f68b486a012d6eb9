#!/usr/bin/env python3
"""Fake server for supervision tests.

Simulates an auxiliary process that boots, optionally announces readiness,
then runs until its duration elapses or it receives SIGINT/SIGTERM.

Usage:
    python fake_server.py [--marker TEXT] [--ready-after SECONDS]
                          [--duration SECONDS] [--exit-code CODE]
                          [--signal-exit-code CODE] [--ignore-sigint]
                          [--stderr TEXT]

Arguments:
    --marker: Text printed once the server is "ready" (default: none)
    --ready-after: Delay before printing the marker (default: 0)
    --duration: How long to run before exiting on its own (default: 30)
    --exit-code: Exit code on natural exit (default: 0)
    --signal-exit-code: Exit code after SIGINT/SIGTERM (default: 0)
    --ignore-sigint: Keep running on SIGINT
    --stderr: Text written to stderr at boot
"""

from __future__ import annotations

import argparse
import signal
import sys
import time

_should_stop = False


def signal_handler(signum: int, frame) -> None:
    """Handle SIGINT/SIGTERM signals."""
    global _should_stop
    print(f"received {signal.Signals(signum).name}", flush=True)
    _should_stop = True


def main() -> int:
    parser = argparse.ArgumentParser(description="Fake server for testing")
    parser.add_argument("--marker", type=str, default=None)
    parser.add_argument("--ready-after", type=float, default=0.0)
    parser.add_argument("--duration", type=float, default=30.0)
    parser.add_argument("--exit-code", type=int, default=0)
    parser.add_argument("--signal-exit-code", type=int, default=0)
    parser.add_argument("--ignore-sigint", action="store_true")
    parser.add_argument("--stderr", type=str, default=None)
    args = parser.parse_args()

    signal.signal(
        signal.SIGINT,
        signal.SIG_IGN if args.ignore_sigint else signal_handler,
    )
    signal.signal(signal.SIGTERM, signal_handler)

    print("booting", flush=True)
    if args.stderr:
        print(args.stderr, file=sys.stderr, flush=True)

    start_time = time.monotonic()
    announced = args.marker is None

    while not _should_stop:
        elapsed = time.monotonic() - start_time
        if not announced and elapsed >= args.ready_after:
            print(f"server {args.marker} on port 0", flush=True)
            announced = True
        if elapsed >= args.duration:
            print("done", flush=True)
            return args.exit_code
        time.sleep(0.01)

    return args.signal_exit_code


if __name__ == "__main__":
    sys.exit(main())
