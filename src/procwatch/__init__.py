"""procwatch - supervise auxiliary processes in tests.

Start a process, wait until it prints a start check, forward signals to it
and find out how it ended.

Environment variables:
    PROCWATCH_START_CHECK_TIMEOUT: default start check deadline (default 5s)
    PROCWATCH_EXIT_TIMEOUT: default wait for interrupt()/kill() (default 1s)
    PROCWATCH_LOG_OUTPUT: log child output lines (default true)

Usage:
    process = await launch_and_await_ready(Runner(RunnerConfig(...)))
    ...
    await interrupt(process)
"""

__version__ = "0.1.0"

from .errors import (
    AbnormalExit,
    ContractViolation,
    ReadinessTimeout,
    RunnerError,
    StartFailure,
    SupervisionFailure,
)
from .failures import set_failure_handler
from .process import Process, interrupt, kill, launch, launch_and_await_ready
from .runner import Runner, RunnerConfig
from .runtime.process_runner import ProcessSpec

__all__ = [
    "__version__",
    "AbnormalExit",
    "ContractViolation",
    "Process",
    "ProcessSpec",
    "ReadinessTimeout",
    "Runner",
    "RunnerConfig",
    "RunnerError",
    "StartFailure",
    "SupervisionFailure",
    "interrupt",
    "kill",
    "launch",
    "launch_and_await_ready",
    "set_failure_handler",
]
