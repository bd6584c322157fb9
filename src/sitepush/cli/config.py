"""Shared helpers for sitepush CLI commands.

This module provides logging setup, the options every upload command accepts,
and the construction of the objects a command run needs.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click

from sitepush.deploy.config import (
    ConfigurationFile,
    SiteCatalog,
    load_config_from_directory,
    sites_root_from,
)
from sitepush.parallel.orchestrator import SiteUploadResult

F = TypeVar("F", bound=Callable[..., Any])

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(quiet: bool = False, verbose: bool = False) -> None:
    """Configure the sitepush logger to write to stdout.

    Args:
        quiet: Only show errors.
        verbose: Show debug messages.
    """
    level = logging.INFO
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG

    root_logger = logging.getLogger("sitepush")
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stdout_handler)


def common_options(func: F) -> F:
    """Options shared by the upload commands."""
    options = [
        click.option("--dry-run", is_flag=True, help="Show what would be uploaded without uploading."),
        click.option("--profile", default=None, help="Credential profile to use."),
        click.option(
            "--environment",
            "-e",
            default=None,
            help="Deployment environment (dev, staging, prod, test).",
        ),
        click.option(
            "--sites-root",
            type=click.Path(file_okay=False, path_type=Path),
            default=None,
            help="Directory containing one subdirectory per site [env: SITEPUSH_SITES_ROOT].",
        ),
        click.option("--quiet", "-q", is_flag=True, help="Only show errors."),
        click.option("--verbose", "-v", is_flag=True, help="Show debug output."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def parse_site_list(value: str | None) -> list[str]:
    """Split a comma-separated list of site names."""
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


@dataclass
class RunContext:
    """Objects a command run needs."""

    config_file: ConfigurationFile | None
    catalog: SiteCatalog


def build_run_context(sites_root: Path | None) -> RunContext:
    """Load the configuration file of the working directory and build the site catalog."""
    config_file = load_config_from_directory()
    root = sites_root_from(sites_root, config_file=config_file)
    configured = list(config_file.sites) if config_file is not None else []
    return RunContext(config_file=config_file, catalog=SiteCatalog(root, configured))


def report_results(results: list[SiteUploadResult], dry_run: bool) -> bool:
    """Print one line per site and a tally.

    Returns:
        True if every site succeeded.
    """
    action = "would upload" if dry_run else "uploaded"
    for result in sorted(results, key=lambda r: r.site_name):
        if result.succeeded:
            stats = result.stats
            assert stats is not None
            click.echo(
                f"  OK    {result.site_name}: {action} {stats.uploaded_files} file(s), "
                f"skipped {stats.skipped_files} ({result.duration:.1f}s)"
            )
        else:
            click.echo(f"  FAIL  {result.site_name}: {result.error_message}", err=True)

    failed = sum(1 for r in results if not r.succeeded)
    click.echo(f"{len(results) - failed} succeeded, {failed} failed")
    return failed == 0
