"""
Base module interface for callcov analysis modules.

A module validates its inputs, executes, and always returns a ModuleResult:
exceptions raised by the engine are converted into an explicit failed result
rather than escaping to the caller.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from callcov.utils.logging import get_logger


@dataclass
class ModuleResult:
    """Standard result container for all modules."""

    success: bool
    module_name: str
    output_files: dict[str, Path] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    error_message: Optional[str] = None
    execution_time: float = 0.0
    # A cancelled run is not a failure, but its result is partial
    cancelled: bool = False
    result: Optional[Any] = None

    def add_output(self, key: str, path: Union[str, Path]) -> None:
        """Add an output file to the result."""
        self.output_files[key] = Path(path)

    def add_metric(self, key: str, value: Any) -> None:
        """Add a metric to the result."""
        self.metrics[key] = value

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)


class ModuleBase(ABC):
    """Base class for all callcov analysis modules."""

    def __init__(
        self,
        name: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        debug: bool = False,
    ):
        """
        Initialize the module.

        Args:
            name: Module name (defaults to class name)
            logger: Logger instance (creates new if None)
            debug: Enable debug mode
        """
        self.name = name or self.__class__.__name__
        self.logger = logger or get_logger(self.name)
        self.debug = debug
        self._start_time: Optional[float] = None

    def validate_output_dir(self, output_dir: Union[str, Path]) -> Path:
        """Create the output directory if needed and return it."""
        path = Path(output_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @abstractmethod
    def validate_inputs(self, **kwargs: Any) -> bool:
        """
        Validate all required inputs for the module.

        Returns:
            True if validation passes

        Raises:
            CallCovError: If validation fails
        """

    @abstractmethod
    def execute(self, **kwargs: Any) -> ModuleResult:
        """
        Execute the module's main logic.

        Returns:
            ModuleResult object with outputs and metrics
        """

    def run(self, **kwargs: Any) -> ModuleResult:
        """
        Main entry point for running the module.

        Validates inputs, times execution, and converts any exception into a
        failed ModuleResult.
        """
        self._start_time = time.time()
        result = ModuleResult(success=False, module_name=self.name)

        try:
            self.logger.info(f"Starting {self.name}")
            self.validate_inputs(**kwargs)

            result = self.execute(**kwargs)
            result.module_name = self.name
            result.execution_time = time.time() - self._start_time

            if result.cancelled:
                self.logger.warning(
                    f"{self.name} cancelled after {result.execution_time:.2f} seconds; "
                    "results are partial"
                )
            elif result.success:
                self.logger.info(
                    f"{self.name} completed successfully in {result.execution_time:.2f} seconds"
                )
            else:
                self.logger.error(f"{self.name} failed: {result.error_message}")

            for warning in result.warnings:
                self.logger.warning(warning)

        except Exception as e:
            result.success = False
            result.error_message = str(e)
            result.execution_time = time.time() - self._start_time
            self.logger.error(f"{self.name} failed with error: {e}", exc_info=True)

        return result
