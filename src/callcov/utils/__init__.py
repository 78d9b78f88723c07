"""Utility functions (callcov)."""

from callcov.utils.cancellation import CancellationToken
from callcov.utils.logging import get_logger, setup_logging

__all__ = ["CancellationToken", "get_logger", "setup_logging"]
