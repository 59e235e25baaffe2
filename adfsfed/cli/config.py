"""Configuration CLI commands."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from adfsfed.cli.common import get_config, json_option, output_result


@click.group()
def config() -> None:
    """Manage adfsfed configuration."""
    pass


@config.command("show")
@json_option
@click.pass_context
def config_show(ctx: click.Context, output_json: bool) -> None:
    """Show the effective configuration.

    Includes values from the config file and ADFSFED_* environment variables.
    """
    app_config = get_config(ctx)

    if output_json:
        output_result(
            {**app_config.to_dict(), "config_path": app_config.config_path},
            as_json=True,
        )
        return

    if app_config.config_path:
        click.echo(f"# Loaded from {app_config.config_path}")
    else:
        click.echo("# Defaults (no config file found)")
    click.echo(yaml.safe_dump(app_config.to_dict(), default_flow_style=False), nl=False)


@config.command("init")
@click.option(
    "--path",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    help="Where to write the config file (default: ~/.adfsfed/config.yaml)",
)
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite an existing config file.",
)
def config_init(path: Path | None, force: bool) -> None:
    """Write a commented default config file."""
    from adfsfed.core.config import DEFAULT_CONFIG_FILE, get_default_config_yaml

    target = path or DEFAULT_CONFIG_FILE

    if target.exists() and not force:
        click.echo(f"Config file already exists: {target}")
        click.echo("Use --force to overwrite it.")
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(get_default_config_yaml())
    click.echo(f"Config file written to: {target}")
