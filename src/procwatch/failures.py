"""Pluggable failure reporting.

The helpers that exist for test setup/teardown (``launch_and_await_ready``,
``interrupt``, ``kill``) escalate problems through a failure handler instead
of returning them. Runner misuse goes through it too. The handler must not
return. The default raises SupervisionFailure; a test suite can plug in its
own, e.g.::

    import pytest
    from procwatch.failures import set_failure_handler

    set_failure_handler(pytest.fail)
"""

from __future__ import annotations

import logging
from typing import Callable, NoReturn, Optional

from .errors import ContractViolation, SupervisionFailure

__all__ = [
    "FailureHandler",
    "fail",
    "get_failure_handler",
    "report_misuse",
    "set_failure_handler",
]

logger = logging.getLogger(__name__)

FailureHandler = Callable[[str], NoReturn]


def raise_supervision_failure(message: str) -> NoReturn:
    raise SupervisionFailure(message)


_handler: FailureHandler = raise_supervision_failure


def get_failure_handler() -> FailureHandler:
    return _handler


def set_failure_handler(handler: Optional[FailureHandler]) -> FailureHandler:
    """Install ``handler`` (None restores the default); returns the previous one."""
    global _handler
    previous = _handler
    _handler = handler if handler is not None else raise_supervision_failure
    return previous


def fail(message: str, handler: Optional[FailureHandler] = None) -> NoReturn:
    """Report a fatal failure through ``handler`` or the installed one."""
    logger.error(message)
    (handler or _handler)(message)
    # A handler that returns breaks the contract; never continue silently.
    raise SupervisionFailure(message)


def report_misuse(message: str) -> NoReturn:
    """Report a broken usage contract.

    Raises ContractViolation while the default handler is active; an
    installed handler (e.g. ``pytest.fail``) receives the message instead.
    """
    if _handler is raise_supervision_failure:
        logger.error(message)
        raise ContractViolation(message)
    fail(message)
