"""Pytest configuration for callcov tests."""

import logging
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def reset_logging_after_test():
    """Reset callcov logger state after each test.

    setup_logging() sets propagate=False, which breaks caplog in later tests.
    """
    yield
    app_logger = logging.getLogger("callcov")
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.setLevel(logging.NOTSET)
    app_logger.propagate = True


@pytest.fixture(autouse=True)
def reset_cli_shutdown_state():
    """Each test starts with a fresh, uncancelled CLI token."""
    from callcov.cli.pipeline import shutdown

    shutdown.reset()
    yield
    shutdown.reset()
