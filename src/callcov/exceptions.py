"""Custom exceptions for CallCov."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class CallCovError(Exception):
    """Base exception for all CallCov errors."""

    pass


class ConfigurationError(CallCovError):
    """Raised when configuration, parameters or the reference are invalid or missing."""

    pass


class InputFileError(CallCovError):
    """Raised when an input file is unreadable or lacks its index."""

    def __init__(self, message: str = "", path: Optional[Union[str, Path]] = None):
        """Initialize InputFileError.

        Args:
            message: Error message
            path: Offending file path
        """
        if path is not None and str(path) not in message:
            message = f"{message}: {path}" if message else str(path)
        super().__init__(message)
        self.path = Path(path) if path is not None else None

    def __reduce__(self):
        return (type(self), (str(self), self.path))


class DecodeError(CallCovError):
    """Raised when a malformed record is met mid-traversal.

    ``contig`` and ``position`` identify the last locus that was processed
    successfully before the failure (``None``/0 if nothing was processed).
    """

    def __init__(
        self,
        message: str = "",
        contig: Optional[str] = None,
        position: int = 0,
        pass_name: str = "pileup",
    ):
        location = f"{contig}:{position}" if contig else "start of input"
        self.detail = message
        super().__init__(f"{message} (last processed: {location}, pass: {pass_name})")
        self.contig = contig
        self.position = position
        self.pass_name = pass_name

    def __reduce__(self):
        # Rebuild from the original fields when crossing a process boundary
        return (type(self), (self.detail, self.contig, self.position, self.pass_name))


class InvariantError(CallCovError):
    """Raised when aggregated counters or histograms are inconsistent."""

    pass
