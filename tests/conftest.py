"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path (development checkouts)
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_SERVER_PATH = FIXTURES_DIR / "fake_server.py"

from procwatch.config import reload_config  # noqa: E402
from procwatch.runtime.process_runner import ProcessSpec  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_config():
    """Reload env configuration around every test."""
    reload_config()
    yield
    reload_config()


@pytest.fixture
def fake_server() -> Callable[..., ProcessSpec]:
    """Build a ProcessSpec running tests/fixtures/fake_server.py."""

    def build(*args: str) -> ProcessSpec:
        return ProcessSpec(argv=[sys.executable, str(FAKE_SERVER_PATH), *args])

    return build


@pytest.fixture
def python_spec() -> Callable[[str], ProcessSpec]:
    """Build a ProcessSpec running an inline Python snippet."""

    def build(code: str) -> ProcessSpec:
        return ProcessSpec(argv=[sys.executable, "-c", code])

    return build
