"""pysam-backed readers for alignments, references and interval files."""
