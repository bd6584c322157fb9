"""Upload command for the sitepush CLI.

Commands:
- upload: Upload one site, or a short list of sites one after another
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


@click.command()
@click.argument("site", required=False)
@click.option("--sites", "sites_value", default=None, help="Comma-separated list of sites to upload in turn.")
@common_options
def upload(
    site: str | None,
    sites_value: str | None,
    dry_run: bool,
    profile: str | None,
    environment: str | None,
    sites_root: Path | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Upload a site to the bucket.

    Unchanged files (same MD5 as the remote ETag) are skipped.
    """
    from sitepush.parallel.orchestrator import ParallelUploadManager

    setup_logging(quiet, verbose)

    if site and sites_value:
        click.echo("Error: Pass either SITE or --sites, not both.", err=True)
        sys.exit(1)
    names = [site] if site else parse_site_list(sites_value)
    if not names:
        click.echo("Error: No site given. Pass SITE or --sites A,B.", err=True)
        sys.exit(1)

    try:
        context = build_run_context(sites_root)
        manager = ParallelUploadManager(
            max_concurrent_uploads=1,
            catalog=context.catalog,
            config_file=context.config_file,
        )
        try:
            results = manager.upload_sites(
                names,
                dry_run=dry_run,
                profile=profile,
                environment=environment,
            )
        finally:
            manager.close()
    except SitePushError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not report_results(results, dry_run):
        sys.exit(1)
