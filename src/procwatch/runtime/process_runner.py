"""Process runner with subprocess isolation and reliable termination.

procwatch runtime module

This module provides:
- Cross-platform subprocess isolation (new session/process group)
- A live Session handle that can be signaled, killed and waited on
- Concurrent stdout/stderr pumping into a caller-supplied sink
- Graceful termination (SIGTERM -> timeout -> SIGKILL)

Key design points:
- POSIX: start_new_session=True to create new process group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- Session.exited is set only after the process is reaped AND both output
  pipes are drained, so readers never miss trailing output
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .output import OutputBuffer, Sink

__all__ = [
    "IS_WINDOWS",
    "ProcessRunner",
    "ProcessSpec",
    "Session",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

_READ_CHUNK = 4096


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory for the process (None = inherit parent)
        env: Environment variables (None = inherit parent)
        stdin_bytes: Optional bytes to write to stdin
    """

    argv: list[str]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    stdin_bytes: bytes | None = None

    @property
    def path(self) -> str:
        """Executable as given in argv."""
        return self.argv[0] if self.argv else ""


class Session:
    """Live handle on a started subprocess.

    Output from both pipes is mirrored into ``sink`` and kept per stream in
    ``out`` / ``err``. ``exited`` fires once the process is gone and its
    output fully drained.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        spec: ProcessSpec,
        sink: Sink | None = None,
    ) -> None:
        self._process = process
        self.spec = spec
        self.out = OutputBuffer()
        self.err = OutputBuffer()
        self.exited = asyncio.Event()
        self._monitor_task = asyncio.create_task(self._monitor(sink))

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def path(self) -> str:
        return self.spec.path

    @property
    def exit_code(self) -> int:
        """Exit code of the process, or -1 if it has not exited yet."""
        if not self.exited.is_set() or self._process.returncode is None:
            return -1
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    def signal(self, sig: int) -> None:
        """Deliver ``sig`` to the process. No-op once it has exited."""
        if not self.running:
            return
        try:
            self._process.send_signal(sig)
            logger.debug(f"Sent signal {sig} to pid={self.pid}")
        except ProcessLookupError:
            logger.debug(f"Signal {sig} raced with exit of pid={self.pid}")
        except ValueError as e:
            # Windows only supports SIGTERM and CTRL_* events
            logger.warning(f"Cannot deliver signal {sig} to pid={self.pid}: {e}")

    def kill(self) -> Session:
        """Force kill the process (and its group on POSIX).

        Returns the session so callers can chain ``await session.kill().wait()``.
        """
        if not self.running:
            return self
        if IS_WINDOWS:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            return self
        try:
            pgid = os.getpgid(self.pid)
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
        return self

    async def wait(self) -> int:
        """Wait for the process to exit and its output to drain."""
        await self.exited.wait()
        return self.exit_code

    async def _monitor(self, sink: Sink | None) -> None:
        try:
            await asyncio.gather(
                self._pump(self._process.stdout, self.out, sink),
                self._pump(self._process.stderr, self.err, sink),
            )
            await self._process.wait()
            logger.debug(
                f"Subprocess completed pid={self.pid} "
                f"returncode={self._process.returncode}"
            )
        finally:
            self.exited.set()

    @staticmethod
    async def _pump(
        stream: asyncio.StreamReader | None,
        buffer: OutputBuffer,
        sink: Sink | None,
    ) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            buffer.write(chunk)
            if sink is not None:
                sink.write(chunk)


@dataclass
class ProcessRunner:
    """Cross-platform process launcher with isolation and reliable termination.

    Example:
        runner = ProcessRunner()
        session = await runner.start(ProcessSpec(argv=["my-server", "--port", "0"]))
        ...
        await runner.terminate(session)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    async def start(self, spec: ProcessSpec, sink: Sink | None = None) -> Session:
        """Start the subprocess described by ``spec``.

        Raises:
            OSError: If the executable cannot be launched (missing binary,
                permission denied, bad working directory)
            ValueError: If ``spec.argv`` is empty
        """
        if not spec.argv:
            raise ValueError("ProcessSpec.argv must not be empty")

        kwargs = self._build_subprocess_kwargs(spec)

        # Use DEVNULL rather than inheriting the parent's stdin.
        process = await asyncio.create_subprocess_exec(
            *spec.argv,
            stdin=asyncio.subprocess.PIPE if spec.stdin_bytes is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **kwargs,
        )

        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"argv={spec.argv[0]} cwd={spec.cwd}"
        )

        if spec.stdin_bytes is not None and process.stdin:
            process.stdin.write(spec.stdin_bytes)
            try:
                await process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug(f"stdin closed early by pid={process.pid}")
            process.stdin.close()

        return Session(process, spec, sink)

    async def terminate(self, session: Session) -> None:
        """Terminate the session gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM to the process group (or CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, SIGKILL the group
        4. Wait up to kill_timeout for forced exit
        """
        if session.exited.is_set():
            return

        pid = session.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        if IS_WINDOWS:
            self._windows_terminate(session)
        else:
            self._posix_terminate(session)

        try:
            await asyncio.wait_for(session.wait(), timeout=self.term_timeout)
            logger.debug(
                f"Subprocess terminated gracefully pid={pid} "
                f"returncode={session.exit_code}"
            )
            return
        except asyncio.TimeoutError:
            pass

        logger.debug(f"Force killing subprocess pid={pid}")
        session.kill()

        try:
            await asyncio.wait_for(session.wait(), timeout=self.kill_timeout)
            logger.debug(f"Subprocess killed pid={pid} returncode={session.exit_code}")
        except asyncio.TimeoutError:
            logger.warning(f"Subprocess did not exit after kill pid={pid}")

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs."""
        kwargs: dict[str, Any] = {}

        if spec.cwd is not None:
            kwargs["cwd"] = spec.cwd

        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            # POSIX: start_new_session (equivalent to setsid)
            kwargs["start_new_session"] = True

        return kwargs

    @staticmethod
    def _posix_terminate(session: Session) -> None:
        try:
            pgid = os.getpgid(session.pid)
            os.killpg(pgid, signal.SIGTERM)
            logger.debug(f"Sent SIGTERM to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to terminate: {e}")
            session.signal(signal.SIGTERM)

    @staticmethod
    def _windows_terminate(session: Session) -> None:
        try:
            # Works because the child got CREATE_NEW_PROCESS_GROUP
            os.kill(session.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={session.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            session.signal(signal.SIGTERM)
