"""Integration tests for callcov.

These tests build small BAM/FASTA files with pysam and run the full analysis.

Run with: pytest tests/integration/ -v
"""
