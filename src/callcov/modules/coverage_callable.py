"""
Coverage and callable-loci analysis of one indexed alignment.

Runs two independent passes over the alignment: the read-level pass (alignment
rates, pairing, insert sizes) and the pileup pass (depth histograms,
per-position callable states, interval files). Inputs are validated before any
accumulator is allocated; outputs are written into ``config.output_dir``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Tuple

from callcov.config import Config
from callcov.core.aggregator import CoverageCallableResult
from callcov.core.walker import CoverageCallableWalker, select_contigs
from callcov.exceptions import ConfigurationError
from callcov.io.alignment import AlignmentSource
from callcov.io.reference import ReferenceAccessor
from callcov.modules.base import ModuleBase, ModuleResult
from callcov.modules.read_metrics import ReadMetrics, collect_read_metrics
from callcov.modules.summary_writer import SUMMARY_JSON_SUFFIX, write_json, write_outputs
from callcov.utils.cancellation import CancellationToken
from callcov.utils.logging import LogTemplates
from callcov.utils.progress import NOOP, ProgressCallback, prefixed, scoped

# Share of overall progress given to the read-level pass
READ_PASS_WEIGHT = 0.2


class CoverageCallableModule(ModuleBase):
    """Validate inputs, run both passes, aggregate, and write outputs."""

    def __init__(
        self,
        config: Config,
        cancel: Optional[CancellationToken] = None,
        progress: ProgressCallback = NOOP,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.config = config
        self.cancel = cancel or CancellationToken()
        self.progress = progress
        self.contigs: List[Tuple[str, int]] = []

    def validate_inputs(self, **kwargs: Any) -> bool:
        """Fail fast on configuration, index and reference problems."""
        cfg = self.config
        cfg.validate()

        with AlignmentSource(cfg.alignment, cfg.reference) as source:
            header = source.contigs()
        self.contigs = select_contigs(header, cfg.contigs, cfg.main_assembly_only)
        if not self.contigs:
            raise ConfigurationError("No contigs selected for analysis")

        with ReferenceAccessor(cfg.reference) as reference:
            for contig, length in self.contigs:
                if not reference.has_contig(contig):
                    raise ConfigurationError(
                        f"Reference {cfg.reference} does not contain contig {contig}"
                    )
                if reference.length(contig) < length:
                    raise ConfigurationError(
                        f"Reference {contig} ({reference.length(contig):,} bp) is shorter "
                        f"than in the alignment header ({length:,} bp)"
                    )

        self.validate_output_dir(cfg.output_dir)
        self.logger.debug(f"Selected {len(self.contigs)} contig(s) for analysis")
        return True

    def _read_pass(self, progress: ProgressCallback) -> ReadMetrics:
        cfg = self.config
        with AlignmentSource(cfg.alignment, cfg.reference) as source:
            return collect_read_metrics(
                source.reads(),
                progress=progress,
                cancel=self.cancel,
                progress_interval=cfg.runtime.progress_interval,
                cancel_check_interval=cfg.runtime.cancel_check_interval,
            )

    def _pileup_pass(
        self, progress: ProgressCallback, read_metrics: Optional[ReadMetrics]
    ) -> CoverageCallableResult:
        cfg = self.config
        walker = CoverageCallableWalker(
            cfg.params,
            interval_dir=cfg.output_dir if cfg.output.write_intervals else None,
            progress=progress,
            cancel=self.cancel,
            progress_interval=cfg.runtime.progress_interval,
            cancel_check_interval=cfg.runtime.cancel_check_interval,
            show_progress_bar=cfg.runtime.enable_progress,
        )
        if cfg.threads > 1 and len(self.contigs) > 1:
            return walker.walk_parallel(
                cfg.alignment, cfg.reference, self.contigs, cfg.threads, read_metrics
            )
        with AlignmentSource(cfg.alignment, cfg.reference) as source, ReferenceAccessor(
            cfg.reference
        ) as reference:
            return walker.walk(source, reference, self.contigs, read_metrics)

    def execute(self, **kwargs: Any) -> ModuleResult:
        cfg = self.config
        result = ModuleResult(success=False, module_name=self.name)

        read_metrics: Optional[ReadMetrics] = None
        pileup_start = 0.0
        if not cfg.skip_read_metrics:
            self.logger.info(LogTemplates.PASS_START.format(pass_name="read-level", contigs="all"))
            read_metrics = self._read_pass(
                scoped(prefixed(self.progress, "reads"), 0.0, READ_PASS_WEIGHT)
            )
            pileup_start = READ_PASS_WEIGHT
            result.add_metric("total_records", read_metrics.total_records)
            result.add_metric("pct_pf_reads_aligned", read_metrics.pct_pf_reads_aligned)

        coverage = self._pileup_pass(
            scoped(prefixed(self.progress, "pileup"), pileup_start, 1.0), read_metrics
        )
        result.result = coverage

        result.add_metric("genome_territory", coverage.genome_territory)
        result.add_metric("mean_coverage", coverage.mean_coverage)
        result.add_metric("callable_bases", coverage.callable_bases)
        for contig, path in coverage.interval_files:
            result.add_output(f"intervals:{contig}", path)

        if not coverage.complete:
            # Partial runs get a JSON record of how far they got, but no summary tables
            json_path = Path(cfg.output_dir) / f"{cfg.prefix}{SUMMARY_JSON_SUFFIX}"
            result.add_output("summary_json", write_json(coverage, json_path))
            result.cancelled = True
            result.error_message = (
                f"Analysis cancelled (last processed: {coverage.last_contig or '-'}:"
                f"{coverage.last_position})"
            )
            return result

        for key, path in write_outputs(
            coverage, cfg.output_dir, cfg.prefix, write_tables=cfg.output.write_tables
        ).items():
            result.add_output(key, path)

        result.success = True
        return result
