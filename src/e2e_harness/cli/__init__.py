"""Command-line interface for e2e-harness."""

from .app import main

__all__ = ["main"]
