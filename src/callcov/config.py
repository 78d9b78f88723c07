"""Configuration management for CallCov."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Optional, Dict, Any, List
import yaml
from callcov.constants import CANCEL_CHECK_INTERVAL, PROGRESS_INTERVAL
from callcov.exceptions import ConfigurationError


@dataclass(frozen=True)
class CallableParams:
    """Thresholds for callable-state classification.

    Defaults match GATK CallableLoci and must not change: downstream reports
    compare base counts against that tool.
    """

    min_depth: int = 4
    min_mapping_quality: int = 10
    min_base_quality: int = 20
    # Reads with MAPQ <= max_low_mapq count as "low MAPQ"
    max_low_mapq: int = 1
    # Fraction of raw depth allowed to be low MAPQ before POOR_MAPPING_QUALITY
    max_fraction_low_mapq: float = 0.1
    # None means unbounded
    max_depth: Optional[int] = None

    def validate(self) -> None:
        """Raise ConfigurationError if any threshold is out of range."""
        for name in ("min_depth", "min_mapping_quality", "min_base_quality", "max_low_mapq"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")
        if not 0.0 <= float(self.max_fraction_low_mapq) <= 1.0:
            raise ConfigurationError(
                f"max_fraction_low_mapq must be within [0, 1], got {self.max_fraction_low_mapq}"
            )
        if self.max_depth is not None:
            if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
                raise ConfigurationError(f"max_depth must be an integer, got {self.max_depth!r}")
            if self.max_depth < self.min_depth:
                raise ConfigurationError(
                    f"max_depth ({self.max_depth}) must be >= min_depth ({self.min_depth})"
                )

    def replace(self, **changes: Any) -> "CallableParams":
        """Return a copy with the given non-None overrides applied."""
        current = asdict(self)
        for key, value in changes.items():
            if key not in current:
                raise ConfigurationError(f"Unknown callable parameter: {key}")
            if value is not None:
                current[key] = value
        return CallableParams(**current)


@dataclass
class RuntimeConfig:
    """Runtime configuration."""

    log_level: str = "WARNING"
    log_file: Optional[Path] = None
    # Enable tqdm progress where available
    enable_progress: bool = True
    # Positions between progress callbacks / cancellation checks
    progress_interval: int = PROGRESS_INTERVAL
    cancel_check_interval: int = CANCEL_CHECK_INTERVAL


@dataclass
class PerformanceConfig:
    """Performance-related configuration."""

    # 1 = sequential walk; >1 walks contigs in a process pool
    threads: int = 1


@dataclass
class OutputConfig:
    """Which output files to write."""

    write_intervals: bool = True
    write_tables: bool = True


@dataclass
class Config:
    """Main configuration class."""

    # Required parameters (set via CLI or config file)
    alignment: Optional[Path] = None
    reference: Optional[Path] = None
    output_dir: Path = Path("callcov_output")
    prefix: str = "sample"

    # Contig selection
    contigs: Optional[List[str]] = None
    main_assembly_only: bool = False

    skip_read_metrics: bool = False

    # Sub-configurations
    params: CallableParams = field(default_factory=CallableParams)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Convenience properties
    @property
    def threads(self) -> int:
        return self.performance.threads

    @threads.setter
    def threads(self, value: int):
        self.performance.threads = value

    def validate(self) -> None:
        """Validate configuration."""
        if not self.alignment:
            raise ConfigurationError("Alignment file (BAM/CRAM) is required")
        if not self.reference:
            raise ConfigurationError("Reference genome is required")
        if not Path(self.alignment).exists():
            raise ConfigurationError(f"Alignment file not found: {self.alignment}")
        if not Path(self.reference).exists():
            raise ConfigurationError(f"Reference file not found: {self.reference}")

        if not self.prefix or "/" in self.prefix:
            raise ConfigurationError(f"Invalid output prefix: {self.prefix!r}")

        # Validate numeric ranges
        if self.performance.threads < 1:
            raise ConfigurationError("Threads must be >= 1")
        if self.runtime.progress_interval < 1:
            raise ConfigurationError("runtime.progress_interval must be >= 1")
        if self.runtime.cancel_check_interval < 1:
            raise ConfigurationError("runtime.cancel_check_interval must be >= 1")

        if self.contigs is not None:
            if not self.contigs:
                raise ConfigurationError("contigs must not be an empty list")
            if len(set(self.contigs)) != len(self.contigs):
                raise ConfigurationError("contigs must not contain duplicates")

        self.params.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""

        def path_to_str(obj):
            if isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, dict):
                return {k: path_to_str(v) for k, v in obj.items()}
            elif isinstance(obj, (list, tuple)):
                return [path_to_str(item) for item in obj]
            return obj

        return path_to_str(asdict(self))


def _param_names() -> set[str]:
    return {f.name for f in fields(CallableParams)}


def load_config(path: Path) -> Config:
    """Load configuration from YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")

    def build_config(data: Dict[str, Any]) -> Config:
        cfg = Config()

        # Direct attributes
        if data.get("alignment") is not None:
            cfg.alignment = Path(data["alignment"])
        if data.get("reference") is not None:
            cfg.reference = Path(data["reference"])
        if data.get("output_dir") is not None:
            cfg.output_dir = Path(data["output_dir"])
        if "prefix" in data:
            cfg.prefix = data["prefix"]
        if data.get("contigs") is not None:
            cfg.contigs = [str(c) for c in data["contigs"]]
        if "main_assembly_only" in data:
            cfg.main_assembly_only = bool(data["main_assembly_only"])
        if "skip_read_metrics" in data:
            cfg.skip_read_metrics = bool(data["skip_read_metrics"])
        if data.get("threads") is not None:
            cfg.performance.threads = data["threads"]

        # Classification thresholds
        params = data.get("params") or {}
        unknown = sorted(set(params) - _param_names())
        if unknown:
            raise ConfigurationError("Unsupported params option(s): " + ", ".join(unknown))
        if params:
            cfg.params = CallableParams(**params)

        # Runtime config
        if "runtime" in data:
            for key, value in (data["runtime"] or {}).items():
                if hasattr(cfg.runtime, key):
                    if key == "log_file" and value:
                        value = Path(value)
                    setattr(cfg.runtime, key, value)

        # Performance config
        if "performance" in data:
            for key, value in (data["performance"] or {}).items():
                if hasattr(cfg.performance, key):
                    setattr(cfg.performance, key, value)

        # Output config
        if "output" in data:
            for key, value in (data["output"] or {}).items():
                if hasattr(cfg.output, key):
                    setattr(cfg.output, key, bool(value))

        return cfg

    return build_config(data)


def save_config(cfg: Config, path: Path) -> None:
    """Save configuration to YAML file."""
    data = cfg.to_dict()
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
