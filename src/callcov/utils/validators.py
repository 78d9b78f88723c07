"""Validation utilities for callcov."""

from __future__ import annotations

import importlib
from typing import List


def validate_installation(full_check: bool = False) -> List[str]:
    """
    Validate the callcov installation and its dependencies.

    Args:
        full_check: If True, also check that pysam can reach its htslib codecs

    Returns:
        List of validation issues (empty if all good)
    """
    issues = []

    required_modules = ["pysam", "numpy", "pandas", "yaml", "click", "tqdm"]
    for module in required_modules:
        try:
            importlib.import_module(module)
        except ImportError:
            issues.append(f"Missing Python module: {module}")

    if full_check and "Missing Python module: pysam" not in issues:
        import pysam

        for attr in ("AlignmentFile", "FastaFile", "index", "faidx"):
            if not hasattr(pysam, attr):
                issues.append(f"pysam is missing {attr}; reinstall pysam")

    try:
        from callcov.config import Config  # noqa: F401
        from callcov.core.walker import CoverageCallableWalker  # noqa: F401
        from callcov.modules.coverage_callable import CoverageCallableModule  # noqa: F401
        from callcov.modules.callable_query import CallableLociQuery  # noqa: F401
    except ImportError as e:
        issues.append(f"callcov module import error: {e}")

    return issues
