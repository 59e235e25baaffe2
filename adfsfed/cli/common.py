"""Shared CLI options and output helpers."""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from typing import Any, NoReturn, TypeVar

import click

from adfsfed.core.config import AppConfig
from adfsfed.core.directory import DirectoryCredential, DirectorySession, ensure_session
from adfsfed.core.errors import AuthenticationError

F = TypeVar("F", bound=Callable[..., Any])

# Common option for JSON output
json_option = click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON for scripting",
)


def credential_options(func: F) -> F:
    """Add the directory sign-in options to a command."""
    options = [
        click.option(
            "--username",
            "-u",
            envvar="ADFSFED_USERNAME",
            help="Directory administrator user principal name (no MFA; prefer --access-token or --app-id)",
        ),
        click.option(
            "--password",
            "-p",
            envvar="ADFSFED_PASSWORD",
            help="Password for --username (prompted if omitted)",
        ),
        click.option(
            "--app-id",
            envvar="ADFSFED_APP_ID",
            help="Application (client) id of a service principal",
        ),
        click.option(
            "--app-secret",
            envvar="ADFSFED_APP_SECRET",
            help="Client secret of the service principal",
        ),
        click.option(
            "--access-token",
            envvar="ADFSFED_ACCESS_TOKEN",
            help="Existing Graph access token to reuse if still valid",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def output_result(data: dict[str, Any], as_json: bool = False) -> None:
    """Output result as JSON.

    Args:
        data: Data to output
        as_json: If True, output as JSON
    """
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))


def error_result(message: str, as_json: bool = False) -> NoReturn:
    """Output error message and exit.

    This function never returns - it either raises ClickException or calls sys.exit.

    Args:
        message: Error message
        as_json: If True, output as JSON
    """
    if as_json:
        click.echo(json.dumps({"error": message}, indent=2), err=True)
        sys.exit(1)
    raise click.ClickException(message)


def get_config(ctx: click.Context) -> AppConfig:
    """Get the configuration loaded by the root command."""
    ctx.ensure_object(dict)
    config = ctx.obj.get("config")
    if config is None:
        from adfsfed.core.config import load_config

        config = load_config()
        ctx.obj["config"] = config
    return config


def prompt_credential() -> DirectoryCredential:
    """Interactively ask for a directory administrator credential."""
    click.echo("No active directory session; sign in to continue.", err=True)
    username = click.prompt("Username", err=True)
    password = click.prompt("Password", hide_input=True, err=True)
    return DirectoryCredential(username=username, password=password)


def build_credential(
    username: str | None,
    password: str | None,
    app_id: str | None,
    app_secret: str | None,
) -> DirectoryCredential | None:
    """Build a credential from command line options.

    Returns None when no credential options were given.

    Raises:
        click.UsageError: If the options are incomplete.
    """
    if app_id or app_secret:
        if not (app_id and app_secret):
            raise click.UsageError("--app-id and --app-secret must be used together")
        if username:
            raise click.UsageError("Use either --username or --app-id, not both")
        return DirectoryCredential(client_id=app_id, client_secret=app_secret)

    if username:
        if not password:
            password = click.prompt(f"Password for {username}", hide_input=True, err=True)
        return DirectoryCredential(username=username, password=password)

    if password:
        raise click.UsageError("--password requires --username")
    return None


def session_from_token(tenant: str, access_token: str | None) -> DirectorySession | None:
    """Wrap a previously obtained access token as a session to check."""
    if not access_token:
        return None
    return DirectorySession(tenant_id=tenant, access_token=access_token)


def open_session(
    config: AppConfig,
    tenant: str,
    username: str | None,
    password: str | None,
    app_id: str | None,
    app_secret: str | None,
    access_token: str | None,
    as_json: bool = False,
) -> DirectorySession:
    """Establish a directory session from command line options."""
    credential = build_credential(username, password, app_id, app_secret)
    try:
        return ensure_session(
            tenant,
            config.directory,
            session=session_from_token(tenant, access_token),
            credential=credential,
            prompt=prompt_credential,
        )
    except AuthenticationError as e:
        error_result(str(e), as_json)
