"""CLI module for the Mimir bridge."""

from mimirbridge.cli.main import app, main_cli

__all__ = ["app", "main_cli"]
