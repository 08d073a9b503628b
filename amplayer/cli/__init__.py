"""Command-line interface for amplayer."""
