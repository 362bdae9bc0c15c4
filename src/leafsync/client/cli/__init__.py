"""Command-line interface for leafsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config: Show or update connection settings
- status: Check whether the remote has unpulled commits
- pull: Download notes into the local cache
- push: Upload the local cache as one commit
"""

from __future__ import annotations

import logging

import click

from leafsync.client.cli.config import (
    get_cache_file,
    get_config_dir,
    get_config_file,
    load_config,
    load_settings,
    save_config,
    save_settings,
)
from leafsync.client.cli.settings import config
from leafsync.client.cli.sync import pull, push, status


def configure_logging(verbose: bool) -> None:
    """Route leafsync log records to stderr.

    Args:
        verbose: Show DEBUG records instead of warnings and errors only.
    """
    leafsync_logger = logging.getLogger("leafsync")
    for handler in list(leafsync_logger.handlers):
        leafsync_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    leafsync_logger.addHandler(handler)
    leafsync_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.group()
@click.version_option(package_name="leafsync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """leafsync - Sync markdown notes with a GitHub repository."""
    configure_logging(verbose)


# Settings
cli.add_command(config)

# Sync commands
cli.add_command(status)
cli.add_command(pull)
cli.add_command(push)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    "configure_logging",
    # Config utilities
    "get_cache_file",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "load_settings",
    "save_config",
    "save_settings",
]
