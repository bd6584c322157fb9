"""Command-line interface for sitepush.

This module provides the main CLI entry point and assembles all commands.

Commands:
- upload: Upload one site (or a few, one after another)
- upload-all: Upload several sites concurrently
- profiles: Show credential profiles and the active one
"""

from __future__ import annotations

import click

from sitepush.cli.config import (
    build_run_context,
    common_options,
    parse_site_list,
    report_results,
    setup_logging,
)
from sitepush.cli.profiles import profiles
from sitepush.cli.upload import upload
from sitepush.cli.upload_all import upload_all


@click.group()
@click.version_option(package_name="sitepush")
def cli() -> None:
    """sitepush - Deploy static sites to S3-compatible storage."""


# Upload commands
cli.add_command(upload)
cli.add_command(upload_all)

# Credential commands
cli.add_command(profiles)


def main() -> None:
    """Entry point for the sitepush console script."""
    cli()


__all__ = [
    "build_run_context",
    "cli",
    "common_options",
    "main",
    "parse_site_list",
    "report_results",
    "setup_logging",
]
