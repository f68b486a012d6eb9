"""Asynchronous handle on a supervised process.

``launch`` schedules a Runner's control loop as an asyncio task and returns
a Process right away. The Process exposes:

- ``ready()``: resolves once the process passed its start check
- ``wait()``: resolves with the run outcome (None or a RunnerError)
- ``signal(sig)``: fire-and-forget signal delivery

The helpers below (``launch_and_await_ready``, ``interrupt``, ``kill``) are
meant for test setup and teardown: they report problems through the
failure handler instead of returning them.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

import anyio

from .config import get_config
from .errors import RunnerError
from .failures import FailureHandler, fail
from .runner import Runner
from .runtime.channels import SignalChannel

__all__ = [
    "Process",
    "interrupt",
    "kill",
    "launch",
    "launch_and_await_ready",
]

logger = logging.getLogger(__name__)

# Windows has no SIGKILL; Popen.send_signal(SIGTERM) calls TerminateProcess.
SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)


class Process:
    """Handle on a Runner whose control loop runs in the background.

    Must be created inside a running event loop (use ``launch``).
    """

    def __init__(self, runner: Runner) -> None:
        self.runner = runner
        self._signals = SignalChannel()
        self._ready = asyncio.Event()
        self._deliveries: set[asyncio.Task[bool]] = set()
        self._task: asyncio.Task[Optional[RunnerError]] = asyncio.create_task(
            self._run(), name=f"procwatch:{runner.name}"
        )

    def __repr__(self) -> str:
        if self._task.done():
            status = "exited"
        elif self._ready.is_set():
            status = "ready"
        else:
            status = "starting"
        return f"Process(name={self.name!r}, status={status})"

    @property
    def name(self) -> str:
        return self.runner.name

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def exited(self) -> bool:
        return self._task.done()

    async def ready(self) -> None:
        """Wait until the process is ready. Never resolves if it fails to start."""
        await self._ready.wait()

    async def wait(self) -> Optional[RunnerError]:
        """Wait for the run outcome.

        Every caller gets the same value. Cancelling a waiter does not
        cancel the supervision.
        """
        return await asyncio.shield(self._task)

    def signal(self, sig: int) -> None:
        """Deliver ``sig`` without blocking; dropped if the process has exited."""
        if self._task.done():
            logger.debug(f"Process '{self.name}' already exited, dropping signal {sig}")
            return
        delivery = asyncio.create_task(self._signals.send(sig))
        self._deliveries.add(delivery)
        delivery.add_done_callback(self._deliveries.discard)

    async def _run(self) -> Optional[RunnerError]:
        try:
            return await self.runner.run(self._signals, self._ready)
        finally:
            self._signals.close()


def launch(runner: Runner) -> Process:
    """Start supervising ``runner`` in the background."""
    return Process(runner)


async def launch_and_await_ready(
    runner: Runner,
    *,
    fail_with: FailureHandler | None = None,
) -> Process:
    """Launch ``runner`` and wait until it is ready.

    If the process terminates before it becomes ready, the failure handler
    is invoked and this coroutine does not return normally.
    """
    process = launch(runner)
    readiness = asyncio.create_task(process.ready())
    try:
        await asyncio.wait({readiness, process._task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        readiness.cancel()

    if process.is_ready:
        return process

    status = await process.wait()
    reason = status if status is not None else "process exited before it became ready"
    fail(f"runner '{runner.name}' failed before becoming ready: {reason}", fail_with)


async def interrupt(
    process: Process | None,
    timeout: float | None = None,
    *,
    fail_with: FailureHandler | None = None,
) -> Optional[RunnerError]:
    """Send SIGINT and wait for the process to exit.

    Returns the run outcome; not exiting within ``timeout`` seconds is
    reported through the failure handler.
    """
    return await _stop(process, signal.SIGINT, "interrupted", timeout, fail_with)


async def kill(
    process: Process | None,
    timeout: float | None = None,
    *,
    fail_with: FailureHandler | None = None,
) -> Optional[RunnerError]:
    """Send SIGKILL and wait for the process to exit (see ``interrupt``)."""
    return await _stop(process, SIGKILL, "killed", timeout, fail_with)


async def _stop(
    process: Process | None,
    sig: int,
    action: str,
    timeout: float | None,
    fail_with: FailureHandler | None,
) -> Optional[RunnerError]:
    if process is None:
        return None
    if timeout is None:
        timeout = get_config().exit_timeout

    process.signal(sig)
    with anyio.move_on_after(timeout):
        return await process.wait()

    fail(
        f"process '{process.name}' {action} but it failed to exit within {timeout}s",
        fail_with,
    )
