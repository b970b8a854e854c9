"""Command-line interface for svcman."""
