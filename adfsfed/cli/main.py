"""CLI entry point for adfsfed."""

from pathlib import Path

import click

from adfsfed import __version__
from adfsfed.cli import certs as cert_commands
from adfsfed.cli import config as config_commands
from adfsfed.cli import domain as domain_commands
from adfsfed.cli import federate as federate_commands
from adfsfed.core.config import load_config
from adfsfed.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="adfsfed")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    help="Config file (default: ~/.adfsfed/config.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(["ERROR", "INFO", "DEBUG", "TRACE"], case_sensitive=False),
    help="Log verbosity (default: from config or INFO)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Also write logs to this file",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Allow TRACE logging of request bodies (includes sensitive data)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_file: str | None,
    trace: bool,
) -> None:
    """adfsfed - Federate domains with AD FS in a cloud directory tenant."""
    ctx.ensure_object(dict)

    app_config = load_config(config_path)
    configure_logging(
        log_level or app_config.logging.level,
        trace_enabled=trace,
        log_file=log_file or app_config.logging.file,
    )
    ctx.obj["config"] = app_config


cli.add_command(federate_commands.federate)
cli.add_command(federate_commands.endpoints)
cli.add_command(cert_commands.cert)
cli.add_command(domain_commands.domain)
cli.add_command(config_commands.config)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
