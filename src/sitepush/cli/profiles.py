"""Profiles command for the sitepush CLI.

Commands:
- profiles: Show configured credential profiles and which one would be used
"""

from __future__ import annotations

import click

from sitepush.cli.config import setup_logging


@click.command()
@click.option("--profile", default=None, help="Profile to check.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output.")
def profiles(profile: str | None, verbose: bool) -> None:
    """List credential profiles and show how the active one is resolved."""
    from sitepush.storage.credentials import ProfileValidator, resolve_profile

    setup_logging(verbose=verbose)

    validator = ProfileValidator()
    available = validator.available_profiles()
    resolution = resolve_profile(profile)

    if available:
        click.echo("Configured profiles:")
        for name in available:
            marker = "*" if name == resolution.profile_name else " "
            click.echo(f"  {marker} {name}")
    else:
        click.echo("No profiles configured.")

    active = resolution.profile_name or "default credential chain"
    click.echo(f"Active: {active} (source: {resolution.source.value})")
    if resolution.region:
        click.echo(f"Region: {resolution.region}")

    if resolution.profile_name and resolution.profile_name not in available:
        click.echo(
            f"Warning: profile '{resolution.profile_name}' is not configured; "
            "the default credential chain will be used.",
            err=True,
        )
