"""Resource files and configuration templates."""


def get_default_config() -> str:
    """Return default configuration YAML content."""
    return """# callcov Configuration File

# Input files (can be overridden by CLI arguments)
alignment: ~
reference: ~
output_dir: "callcov_output"
prefix: "sample"

# Contig selection: list of names, or ~ for every contig in the header
contigs: ~
main_assembly_only: false

# Skip the read-level pass (alignment rates, insert sizes)
skip_read_metrics: false

# Callable-state thresholds (GATK CallableLoci defaults)
params:
  min_depth: 4
  min_mapping_quality: 10
  min_base_quality: 20
  max_low_mapq: 1
  max_fraction_low_mapq: 0.1
  max_depth: ~

# Runtime settings
runtime:
  log_level: "WARNING"
  log_file: ~
  enable_progress: true
  progress_interval: 1000000
  cancel_check_interval: 1000000

# Performance settings
performance:
  threads: 1

# Output files
output:
  write_intervals: true
  write_tables: true
"""
