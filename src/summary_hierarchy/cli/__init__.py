"""Command-line interface for summary-hierarchy."""
