"""callcov analysis modules.

- read_metrics       read-level pass (alignment rates, pairing, insert size)
- coverage_callable  full analysis: read pass, pileup pass, outputs
- summary_writer     GATK-style tables, JSON/TSV summaries, cache loader
- callable_query     position lookups against interval files
"""
