"""Version information for CallCov."""

__version__ = "0.4.0"
__author__ = "CallCov developers"
__license__ = "GPL-2.0"
__description__ = "Single-pass coverage statistics and callable-loci classification for BAM/CRAM"
