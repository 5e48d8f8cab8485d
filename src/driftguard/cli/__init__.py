"""Command-line interface."""

from driftguard.cli.main import cli, main

__all__ = ['cli', 'main']
