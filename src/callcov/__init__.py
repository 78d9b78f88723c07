"""CallCov: coverage statistics and callable-loci classification for BAM/CRAM files."""

from callcov.__version__ import __version__

__all__ = ["__version__"]
