"""Settings command for the leafsync CLI.

Commands:
- config: Show or update connection settings
"""

from __future__ import annotations

import dataclasses

import click

from leafsync.client.cli.config import (
    get_config_file,
    load_settings,
    mask_token,
    save_settings,
)


@click.command("config")
@click.option("--token", help="GitHub access token.")
@click.option("--repo", "repo_name", help="Repository in owner/name form.")
@click.option("--branch", help="Branch holding the notes.")
@click.option("--username", help="Committer name.")
@click.option("--email", help="Committer email.")
@click.option("--api-url", help="GitHub API base URL.")
@click.option("--timeout", type=float, help="Request timeout in seconds.")
def config(**options: str | float | None) -> None:
    """Show or update connection settings.

    Without options, prints the current settings (token masked).
    """
    settings = load_settings()
    updates = {k: v for k, v in options.items() if v is not None}

    if updates:
        settings = dataclasses.replace(settings, **updates)
        save_settings(settings)
        click.echo(f"Saved settings to {get_config_file()}")

    click.echo(f"Repository: {settings.repo_name or '(not set)'}")
    click.echo(f"Branch:     {settings.branch}")
    click.echo(f"Token:      {mask_token(settings.token)}")
    click.echo(f"Committer:  {settings.committer_name} <{settings.committer_email}>")
    click.echo(f"API URL:    {settings.api_url}")

    if not settings.is_valid:
        click.echo("Warning: token and repository are required to sync.", err=True)
