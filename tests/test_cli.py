"""Command line tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from procwatch.cli import EXIT_READINESS_TIMEOUT, EXIT_START_FAILURE, build_parser, exit_status, main
from procwatch.errors import AbnormalExit, ReadinessTimeout, StartFailure

FAKE_SERVER_PATH = Path(__file__).parent / "fixtures" / "fake_server.py"


class TestExitStatus:
    """Test outcome to exit status mapping."""

    def test_success(self):
        assert exit_status(None) == 0

    def test_abnormal_exit(self):
        assert exit_status(AbnormalExit("api", 3)) == 3

    def test_killed_by_signal(self):
        assert exit_status(AbnormalExit("api", -9)) == 137

    def test_readiness_timeout(self):
        assert exit_status(ReadinessTimeout("api", "ready", "")) == EXIT_READINESS_TIMEOUT

    def test_start_failure(self):
        assert exit_status(StartFailure("api", FileNotFoundError("nope"))) == EXIT_START_FAILURE


class TestParser:
    """Test argument parsing."""

    def test_command_after_separator(self):
        args = build_parser().parse_args(["--start-check", "up", "--", "server", "-v"])

        assert args.start_check == "up"
        assert [a for a in args.command if a != "--"] == ["server", "-v"]

    def test_missing_command(self):
        with pytest.raises(SystemExit):
            main([])


class TestMain:
    """Test end-to-end runs."""

    def test_successful_command(self):
        assert main(["--", sys.executable, "-c", "print('hi')"]) == 0

    def test_exit_code_is_propagated(self):
        assert main(["--name", "job", "--", sys.executable, "-c", "import sys; sys.exit(3)"]) == 3

    def test_start_failure(self):
        assert main(["--", "/nonexistent/procwatch-bin"]) == EXIT_START_FAILURE

    def test_readiness_timeout(self):
        argv = [
            "--start-check", "ready",
            "--start-check-timeout", "0.2",
            "--",
            sys.executable, str(FAKE_SERVER_PATH),
        ]
        assert main(argv) == EXIT_READINESS_TIMEOUT

    def test_start_check_seen(self):
        argv = [
            "--start-check", "listening",
            "--",
            sys.executable, str(FAKE_SERVER_PATH), "--marker", "listening", "--duration", "0.2",
        ]
        assert main(argv) == 0
