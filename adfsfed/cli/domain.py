"""Tenant domain CLI commands."""

from __future__ import annotations

import click

from adfsfed.cli.common import (
    credential_options,
    error_result,
    get_config,
    json_option,
    open_session,
    output_result,
)
from adfsfed.core.directory import DirectoryClient, DomainRecord
from adfsfed.core.errors import DirectoryApiError


def _echo_domain(record: DomainRecord) -> None:
    click.echo(f"{record.name}")
    click.echo(f"  Status: {record.status.value}")
    click.echo(f"  Authentication: {record.authentication.value}")
    click.echo(f"  Default: {record.is_default}")
    if record.is_initial:
        click.echo("  Initial: True")
    if record.federation:
        click.echo(f"  Issuer URI: {record.federation.issuer_uri}")
        click.echo(f"  Passive sign-in: {record.federation.passive_sign_in_uri}")
        click.echo(f"  Active sign-in: {record.federation.active_sign_in_uri}")
        click.echo(f"  Sign-out: {record.federation.sign_out_uri}")
        click.echo(f"  Metadata exchange: {record.federation.metadata_exchange_uri}")


@click.group()
def domain() -> None:
    """Inspect domains registered in a tenant."""
    pass


@domain.command("list")
@click.argument("tenant")
@credential_options
@json_option
@click.pass_context
def domain_list(
    ctx: click.Context,
    tenant: str,
    username: str | None,
    password: str | None,
    app_id: str | None,
    app_secret: str | None,
    access_token: str | None,
    output_json: bool,
) -> None:
    """List the domains registered in TENANT."""
    config = get_config(ctx)
    session = open_session(config, tenant, username, password, app_id, app_secret, access_token, output_json)

    try:
        with DirectoryClient(session, config.directory) as client:
            records = client.list_domains()
    except DirectoryApiError as e:
        error_result(str(e), output_json)

    if output_json:
        output_result({"domains": [r.to_dict() for r in records]}, as_json=True)
        return

    if not records:
        click.echo(f"No domains registered in {tenant}")
        return

    click.echo(f"{'Domain':<40} {'Status':<12} {'Authentication':<15} Default")
    click.echo("-" * 76)
    for record in records:
        click.echo(
            f"{record.name:<40} {record.status.value:<12} "
            f"{record.authentication.value:<15} {'*' if record.is_default else ''}"
        )


@domain.command("show")
@click.argument("tenant")
@click.argument("name")
@credential_options
@json_option
@click.pass_context
def domain_show(
    ctx: click.Context,
    tenant: str,
    name: str,
    username: str | None,
    password: str | None,
    app_id: str | None,
    app_secret: str | None,
    access_token: str | None,
    output_json: bool,
) -> None:
    """Show domain NAME in TENANT, with its federation settings."""
    config = get_config(ctx)
    session = open_session(config, tenant, username, password, app_id, app_secret, access_token, output_json)

    try:
        with DirectoryClient(session, config.directory) as client:
            record = client.get_domain(name)
            if record is not None and record.is_federated:
                record.federation = client.get_federation_configuration(name)
    except DirectoryApiError as e:
        error_result(str(e), output_json)

    if record is None:
        error_result(f"Domain {name} is not registered in {tenant}", output_json)

    if output_json:
        output_result(record.to_dict(), as_json=True)
        return

    _echo_domain(record)


@domain.command("dns-record")
@click.argument("tenant")
@click.argument("name")
@credential_options
@json_option
@click.pass_context
def domain_dns_record(
    ctx: click.Context,
    tenant: str,
    name: str,
    username: str | None,
    password: str | None,
    app_id: str | None,
    app_secret: str | None,
    access_token: str | None,
    output_json: bool,
) -> None:
    """Show the TXT record that proves ownership of NAME.

    Also reports whether the record is already visible in DNS.
    """
    from adfsfed.core.dns import txt_record_present, verification_instructions

    config = get_config(ctx)
    session = open_session(config, tenant, username, password, app_id, app_secret, access_token, output_json)

    try:
        with DirectoryClient(session, config.directory) as client:
            records = client.get_verification_records(name)
    except DirectoryApiError as e:
        error_result(str(e), output_json)

    if not records:
        error_result(f"No TXT verification record issued for {name}", output_json)

    record = records[0]
    published = txt_record_present(name, record.text, config.dns.nameservers)

    if output_json:
        output_result({**record.to_dict(), "domain": name, "published": published}, as_json=True)
        return

    click.echo(verification_instructions(name, record.text, record.ttl), nl=False)
    click.echo("")
    click.echo(f"Published: {'yes' if published else 'no'}")
