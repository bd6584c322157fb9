"""Batch upload command for the sitepush CLI.

Commands:
- upload-all: Upload several sites concurrently
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from sitepush.cli.config import (
    build_run_context,
    common_options,
    parse_site_list,
    report_results,
    setup_logging,
)
from sitepush.errors import SitePushError
from sitepush.parallel.orchestrator import DEFAULT_MAX_CONCURRENT_UPLOADS


@click.command("upload-all")
@click.option("--all", "all_sites", is_flag=True, help="Upload every site under the sites root.")
@click.option("--sites", "sites_value", default=None, help="Comma-separated list of sites to upload.")
@click.option("--exclude", "exclude_value", default=None, help="Sites to skip when using --all (comma-separated).")
@click.option(
    "--max-concurrent",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_CONCURRENT_UPLOADS,
    show_default=True,
    help="Maximum number of sites uploading at once.",
)
@click.option(
    "--exclude-files",
    default=None,
    help='File patterns to exclude, e.g. "*.log,drafts/**,**/node_modules/**".',
)
@common_options
def upload_all(
    all_sites: bool,
    sites_value: str | None,
    exclude_value: str | None,
    max_concurrent: int,
    exclude_files: str | None,
    dry_run: bool,
    profile: str | None,
    environment: str | None,
    sites_root: Path | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Upload several sites in parallel.

    One site's failure does not stop the others; the command exits with a
    non-zero status if any site failed.
    """
    from sitepush.parallel.orchestrator import ParallelUploadManager
    from sitepush.transfer.exclusion import ExcludePatterns, parse_exclude_patterns

    setup_logging(quiet, verbose)

    if all_sites == bool(sites_value):
        click.echo("Error: Pass exactly one of --all or --sites.", err=True)
        sys.exit(1)
    if exclude_value and not all_sites:
        click.echo("Error: --exclude can only be used with --all.", err=True)
        sys.exit(1)

    patterns = parse_exclude_patterns(exclude_files)
    exclude = ExcludePatterns(patterns) if patterns else None

    try:
        context = build_run_context(sites_root)
        names = context.catalog.select(
            sites=parse_site_list(sites_value),
            all_sites=all_sites,
            exclude=parse_site_list(exclude_value),
        )
        if not names:
            click.echo(f"No sites to upload under {context.catalog.sites_root}")
            return

        click.echo(f"Uploading {len(names)} site(s): {', '.join(names)}")
        manager = ParallelUploadManager(
            max_concurrent_uploads=max_concurrent,
            catalog=context.catalog,
            config_file=context.config_file,
        )
        try:
            results = manager.upload_sites(
                names,
                dry_run=dry_run,
                exclude=exclude,
                profile=profile,
                environment=environment,
                progress_callback=lambda p: click.echo(
                    f"Progress: {p.progress_percentage:.0f}% "
                    f"({p.completed_sites + p.failed_sites}/{p.total_sites} sites)"
                ),
            )
        finally:
            manager.close()
    except SitePushError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not report_results(results, dry_run):
        sys.exit(1)
