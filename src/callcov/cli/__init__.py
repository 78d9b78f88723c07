"""Command-line interface for callcov."""
