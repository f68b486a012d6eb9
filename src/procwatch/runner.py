"""Supervisor for a single external process.

A Runner starts one process, optionally waits for a start check (a marker
in the combined output), forwards signals to it and decides the outcome.
All of that happens in one control loop (``Runner.run``) that reacts to
whichever of four sources is ready first:

- readiness: the start check appeared in the output
- deadline: the start check did not appear in time
- signal: a caller asked to deliver a signal
- exit: the process is gone

``run`` returns None on a clean exit, or a RunnerError describing what
went wrong. Misuse (running twice, inspecting before start) is reported
through the failure handler, which raises ContractViolation unless a test
suite installed its own.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional

from .config import get_config
from .errors import AbnormalExit, ReadinessTimeout, RunnerError, StartFailure
from .failures import report_misuse
from .runtime.channels import SignalChannel
from .runtime.output import LineLogger, OutputBuffer, Sink, TeeSink
from .runtime.process_runner import ProcessRunner, ProcessSpec, Session
from .runtime.watchers import Deadline, Detection, watch

__all__ = ["Runner", "RunnerConfig"]

logger = logging.getLogger(__name__)

CleanupCallback = Callable[[], Optional[Awaitable[Any]]]

# Event sources of the control loop, in the order they are handled when
# several are ready at once.
_READY = "ready"
_SIGNAL = "signal"
_DEADLINE = "deadline"
_EXIT = "exit"
_PRIORITY = (_READY, _SIGNAL, _DEADLINE, _EXIT)


@dataclass(frozen=True)
class RunnerConfig:
    """What to run and how to tell it is up.

    Attributes:
        name: Label used in log lines and error messages
        command: Process to execute
        start_check: Text that signals a successful start ("" = no check)
        start_check_timeout: How long to wait for the start check in seconds
            (None or 0 = PROCWATCH_START_CHECK_TIMEOUT, 5s by default)
        cleanup: Invoked once after the process exits on its own
    """

    name: str
    command: ProcessSpec
    start_check: str = ""
    start_check_timeout: float | None = None
    cleanup: CleanupCallback | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("RunnerConfig.name must not be empty")
        if not self.command.argv:
            raise ValueError(f"runner '{self.name}' has an empty command")
        if self.start_check_timeout is not None and self.start_check_timeout < 0:
            raise ValueError(
                f"runner '{self.name}' start_check_timeout must not be negative"
            )

    @property
    def effective_start_check_timeout(self) -> float:
        if not self.start_check_timeout:
            return get_config().start_check_timeout
        return self.start_check_timeout


class Runner:
    """Single-use supervisor of one process.

    Example:
        runner = Runner(RunnerConfig(
            name="api",
            command=ProcessSpec(argv=["my-api", "--port", "8080"]),
            start_check="listening",
        ))
        process = launch(runner)
        await process.ready()
    """

    def __init__(
        self,
        config: RunnerConfig,
        *,
        process_runner: ProcessRunner | None = None,
    ) -> None:
        settings = get_config()
        self.config = config
        self._process_runner = process_runner or ProcessRunner(
            term_timeout=settings.term_timeout,
            kill_timeout=settings.kill_timeout,
        )
        self._log_output = settings.log_output
        self._buffer = OutputBuffer()
        self._session: Session | None = None
        self._consumed = False

    def __repr__(self) -> str:
        state = "unstarted" if self._session is None else f"pid={self._session.pid}"
        return f"Runner(name={self.name!r}, {state})"

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def started(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Session:
        return self._validate()

    @property
    def buffer(self) -> OutputBuffer:
        """Combined stdout/stderr captured so far."""
        self._validate()
        return self._buffer

    @property
    def err(self) -> OutputBuffer:
        """Stderr only."""
        return self.session.err

    @property
    def exit_code(self) -> int:
        """Exit code of the process, or -1 while it is still running."""
        return self.session.exit_code

    async def run(
        self,
        signals: SignalChannel,
        ready: asyncio.Event,
    ) -> RunnerError | None:
        """Start the process and supervise it until it reaches a terminal state.

        Args:
            signals: Signals to forward to the process
            ready: Set once the start check is seen (or right after start
                when there is no start check)

        Returns:
            None if the process exited with code 0, otherwise the RunnerError
            describing the outcome

        Raises:
            ContractViolation: If this runner has been run before and no
                custom failure handler is installed
        """
        if self._consumed:
            report_misuse(
                f"runner '{self.name}' has already been run; runners are single-use"
            )
        self._consumed = True

        line_logger = LineLogger(self.name) if self._log_output else None
        sink: Sink = TeeSink(self._buffer, line_logger) if line_logger else self._buffer

        try:
            self._session = await self._process_runner.start(self.config.command, sink)
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Runner '{self.name}' failed to start: {e}")
            return StartFailure(self.name, e)

        session = self._session
        logger.info(
            f"Runner '{self.name}' process started {session.path} (pid: {session.pid})"
        )

        detection = watch(self._buffer, self.config.start_check)
        deadline = Deadline.for_start_check(
            self.config.start_check,
            self.config.effective_start_check_timeout,
        )

        waiters: dict[str, asyncio.Task[Any]] = {
            _READY: asyncio.create_task(detection.wait()),
            _SIGNAL: asyncio.create_task(signals.receive()),
            _EXIT: asyncio.create_task(session.exited.wait()),
        }
        if deadline.armed:
            waiters[_DEADLINE] = asyncio.create_task(deadline.wait())

        try:
            while True:
                await asyncio.wait(waiters.values(), return_when=asyncio.FIRST_COMPLETED)
                source = next(s for s in _PRIORITY if s in waiters and waiters[s].done())
                finished = waiters.pop(source)

                if source == _READY:
                    self._on_ready(detection, deadline, waiters, ready)
                elif source == _SIGNAL:
                    session.signal(finished.result())
                    waiters[_SIGNAL] = asyncio.create_task(signals.receive())
                elif source == _DEADLINE:
                    return await self._on_deadline(session)
                else:
                    return await self._on_exit(session)
        finally:
            for task in waiters.values():
                task.cancel()
            detection.cancel()
            deadline.disarm()
            if line_logger is not None:
                line_logger.flush()
            if session.running:
                await self._safe_terminate(session)

    def _on_ready(
        self,
        detection: Detection,
        deadline: Deadline,
        waiters: dict[str, asyncio.Task[Any]],
        ready: asyncio.Event,
    ) -> None:
        detection.cancel()
        deadline.disarm()
        timer = waiters.pop(_DEADLINE, None)
        if timer is not None:
            timer.cancel()
        if self.config.start_check:
            logger.info(f"Runner '{self.name}' saw start check '{self.config.start_check}'")
        ready.set()

    async def _on_deadline(self, session: Session) -> ReadinessTimeout:
        logger.warning(
            f"Runner '{self.name}' did not see '{self.config.start_check}' within "
            f"{self.config.effective_start_check_timeout}s, killing pid={session.pid}"
        )
        await session.kill().wait()
        return ReadinessTimeout(self.name, self.config.start_check, self._buffer.text())

    async def _on_exit(self, session: Session) -> AbnormalExit | None:
        await self._run_cleanup()

        exit_code = session.exit_code
        logger.info(f"Runner '{self.name}' process exited with code {exit_code}")
        if exit_code == 0:
            return None
        return AbnormalExit(self.name, exit_code)

    async def _run_cleanup(self) -> None:
        if self.config.cleanup is None:
            return
        try:
            result = self.config.cleanup()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Runner '{self.name}' cleanup callback failed")

    async def _safe_terminate(self, session: Session) -> None:
        """Stop a still-running process, shielded from cancellation."""
        cleanup = asyncio.ensure_future(self._process_runner.terminate(session))
        try:
            await asyncio.shield(cleanup)
        except asyncio.CancelledError:
            await cleanup
            raise

    def _validate(self) -> Session:
        if self._session is None:
            report_misuse(f"runner '{self.name}' has not started a process yet")
        return self._session
