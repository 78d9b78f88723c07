"""Unified constants for CallCov.

Values shared by the engine, the writers and the CLI live here so that output
formats stay consistent.
"""

# ================== Histogram ==================
# Depth histogram has bins 0..255; deeper positions saturate into the last bin.
HISTOGRAM_BINS: int = 256
MAX_HISTOGRAM_DEPTH: int = HISTOGRAM_BINS - 1

# Genome-wide "fraction of territory at >= N x" thresholds
STANDARD_DEPTH_THRESHOLDS: tuple[int, ...] = (1, 5, 10, 15, 20, 25, 30, 40, 50)

# Per-contig thresholds reported for visualization
CONTIG_DEPTH_THRESHOLDS: tuple[int, ...] = (1, 10, 20, 30)


# ================== Traversal ==================
# Progress callbacks and cancellation checks happen every N positions
PROGRESS_INTERVAL: int = 1_000_000
CANCEL_CHECK_INTERVAL: int = 1_000_000

# Reads processed between progress callbacks in the read-level pass
READ_PROGRESS_INTERVAL: int = 1_000_000


# ================== Read-level metrics ==================
# Insert sizes outside (0, MAX_INSERT_SIZE) are ignored
MAX_INSERT_SIZE: int = 10_000
DEFAULT_INSERT_BUCKET_SIZE: int = 1

# MAPQ value meaning "unavailable" in SAM
MAPQ_UNAVAILABLE: int = 255


# ================== Contig selection ==================
MAIN_ASSEMBLY_PATTERN: str = r"^(chr)?([1-9]|1[0-9]|2[0-2]|X|Y|M|MT)$"


# ================== Output files ==================
INTERVAL_FILE_SUFFIX: str = ".callable.tsv"
SUMMARY_TABLE_SUFFIX: str = ".table.txt"
SUMMARY_TABLE_HEADER: str = "state nBases"

# ================== Pileup ==================
# Per-column read cap handed to htslib (its default of 8000 would truncate depth)
PILEUP_MAX_DEPTH: int = 1_000_000
