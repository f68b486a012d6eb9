"""procwatch environment configuration.

Environment variables:
    PROCWATCH_START_CHECK_TIMEOUT: how long to wait for a start check (seconds)
        - default 5.0, clamped to 0.1-600
        - used when a RunnerConfig sets a start check but no timeout

    PROCWATCH_EXIT_TIMEOUT: how long interrupt()/kill() wait for exit (seconds)
        - default 1.0, clamped to 0.1-600

    PROCWATCH_LOG_OUTPUT: mirror child output to the procwatch.output logger
        - true/1/yes = on (default)
        - false/0/no = off

    PROCWATCH_TERM_TIMEOUT: wait after SIGTERM before SIGKILL (seconds)
        - default 2.0

    PROCWATCH_KILL_TIMEOUT: wait after SIGKILL before giving up (seconds)
        - default 1.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass

__all__ = ["Config", "get_config", "load_config", "reload_config"]

DEFAULT_START_CHECK_TIMEOUT = 5.0
DEFAULT_EXIT_TIMEOUT = 1.0
DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0

_MIN_SECONDS = 0.1
_MAX_SECONDS = 600.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_seconds(value: str | None, default: float) -> float:
    """Parse a duration in seconds, clamped to a sane range.

    Unset, empty or malformed values fall back to ``default``.
    """
    if not value or not value.strip():
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return max(_MIN_SECONDS, min(seconds, _MAX_SECONDS))


@dataclass
class Config:
    """procwatch settings.

    Attributes:
        start_check_timeout: default start check deadline (seconds)
        exit_timeout: default wait for interrupt()/kill() (seconds)
        log_output: whether child output is logged line by line
        term_timeout: grace period after SIGTERM (seconds)
        kill_timeout: grace period after SIGKILL (seconds)
    """

    start_check_timeout: float = DEFAULT_START_CHECK_TIMEOUT
    exit_timeout: float = DEFAULT_EXIT_TIMEOUT
    log_output: bool = True
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    def __repr__(self) -> str:
        return (
            f"Config(start_check_timeout={self.start_check_timeout}, "
            f"exit_timeout={self.exit_timeout}, "
            f"log_output={self.log_output}, "
            f"term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout})"
        )


def load_config() -> Config:
    """Load configuration from the environment."""
    return Config(
        start_check_timeout=_parse_seconds(
            os.environ.get("PROCWATCH_START_CHECK_TIMEOUT"), DEFAULT_START_CHECK_TIMEOUT
        ),
        exit_timeout=_parse_seconds(
            os.environ.get("PROCWATCH_EXIT_TIMEOUT"), DEFAULT_EXIT_TIMEOUT
        ),
        log_output=_parse_bool(os.environ.get("PROCWATCH_LOG_OUTPUT"), default=True),
        term_timeout=_parse_seconds(
            os.environ.get("PROCWATCH_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT
        ),
        kill_timeout=_parse_seconds(
            os.environ.get("PROCWATCH_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT
        ),
    )


# Global configuration instance (lazily loaded)
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from the environment (used by tests)."""
    global _config
    _config = load_config()
    return _config
