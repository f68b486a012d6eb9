"""procwatch exceptions.

Run outcomes are RunnerError instances that the control loop *returns*;
ContractViolation and SupervisionFailure are raised.
"""

from __future__ import annotations

__all__ = [
    "AbnormalExit",
    "ContractViolation",
    "ReadinessTimeout",
    "RunnerError",
    "StartFailure",
    "SupervisionFailure",
]


class RunnerError(Exception):
    """Base class for failed run outcomes.

    Attributes:
        runner_name: Name of the runner that produced the outcome
    """

    def __init__(self, runner_name: str, message: str) -> None:
        self.runner_name = runner_name
        super().__init__(message)


class StartFailure(RunnerError):
    """The process could not be launched at all (bad path, permissions).

    The underlying OSError is chained as ``__cause__``.
    """

    def __init__(self, runner_name: str, reason: BaseException) -> None:
        self.reason = reason
        super().__init__(
            runner_name,
            f"runner '{runner_name}' cannot start a process because of failure: {reason}",
        )
        self.__cause__ = reason


class ReadinessTimeout(RunnerError):
    """The process never printed its start check within the deadline.

    Attributes:
        marker: The expected start check text
        output: Everything the process wrote before it was killed
    """

    def __init__(self, runner_name: str, marker: str, output: str) -> None:
        self.marker = marker
        self.output = output
        super().__init__(
            runner_name,
            f"runner '{runner_name}' did not see '{marker}' in command's output "
            f"within the deadline. output: {output}",
        )


class AbnormalExit(RunnerError):
    """The process exited on its own with a non-zero code."""

    def __init__(self, runner_name: str, exit_code: int) -> None:
        self.exit_code = exit_code
        super().__init__(runner_name, f"exit with status code: {exit_code}")


class ContractViolation(RuntimeError):
    """A runner was misused (run twice, or inspected before it started)."""
    pass


class SupervisionFailure(AssertionError):
    """Raised by the default failure handler to abort a test scenario."""
    pass
