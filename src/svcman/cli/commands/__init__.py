"""CLI command modules."""

from svcman.cli.commands import detect, service

__all__ = [
    "detect",
    "service",
]
