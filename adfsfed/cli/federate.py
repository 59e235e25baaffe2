"""Domain federation CLI commands."""

from __future__ import annotations

from pathlib import Path

import click

from adfsfed.cli.common import (
    build_credential,
    credential_options,
    error_result,
    get_config,
    json_option,
    output_result,
    prompt_credential,
    session_from_token,
)
from adfsfed.core.errors import (
    AuthenticationError,
    CertificateError,
    ConfigurationError,
    DirectoryApiError,
    PreconditionError,
    VerificationPendingError,
)
from adfsfed.core.federation import (
    DefaultDomainSelector,
    FederationRequest,
    build_federation_endpoints,
    federate_domain,
)
from adfsfed.core.logging import get_protocol_logger


@click.command()
@click.argument("tenant")
@click.argument("domain")
@click.argument("server_host")
@click.option(
    "--certificate",
    "-c",
    help="Base64 DER token-signing certificate (exported from AD FS if omitted)",
)
@click.option(
    "--certificate-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),  # type: ignore[type-var]
    help="Token-signing certificate file (PEM or DER)",
)
@credential_options
@click.option(
    "--default-pattern",
    help="Make DOMAIN the default when the current default domain matches this pattern",
)
@click.option(
    "--no-default",
    is_flag=True,
    help="Never change the tenant's default domain",
)
@click.option(
    "--protocol-log",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    help="Write the Graph requests and responses of this run to a JSON file",
)
@json_option
@click.pass_context
def federate(
    ctx: click.Context,
    tenant: str,
    domain: str,
    server_host: str,
    certificate: str | None,
    certificate_file: Path | None,
    username: str | None,
    password: str | None,
    app_id: str | None,
    app_secret: str | None,
    access_token: str | None,
    default_pattern: str | None,
    no_default: bool,
    protocol_log: Path | None,
    output_json: bool,
) -> None:
    """Federate DOMAIN in TENANT with the AD FS server SERVER_HOST.

    Registers the domain in the tenant, checks its DNS TXT verification
    record, and sets the federation trust: issuer URI, sign-on endpoints
    and the token-signing certificate.

    Without --certificate or --certificate-file the token-signing
    certificate is exported from AD FS, so the command must then run on
    the federation server.

    If the TXT record is not published yet, the record to add is printed
    and the command stops. Run it again once DNS has been updated.

    Sign in with --access-token or a service principal (--app-id and
    --app-secret). Username and password sign-in is deprecated by
    Microsoft and fails for accounts that require MFA.

    Examples:

        # On the AD FS server, prompting for credentials
        adfsfed federate contoso.onmicrosoft.com contoso.com fs.contoso.com

        # Elsewhere, with an exported certificate and a service principal
        adfsfed federate contoso.onmicrosoft.com contoso.com fs.contoso.com \\
            --certificate-file token-signing.cer --app-id ID --app-secret SECRET
    """
    from adfsfed.core.crypto import signing_certificate_from_file

    config = get_config(ctx)

    if certificate is not None and certificate_file is not None:
        raise click.UsageError("Use either --certificate or --certificate-file, not both")

    if certificate_file is not None:
        try:
            certificate = signing_certificate_from_file(certificate_file).base64
        except CertificateError as e:
            error_result(str(e), output_json)

    if no_default:
        selector = DefaultDomainSelector(None)
    else:
        selector = DefaultDomainSelector(default_pattern or config.federation.default_domain_pattern)

    try:
        request = FederationRequest(
            tenant_id=tenant,
            domain=domain,
            server_host=server_host,
            certificate=certificate,
            credential=build_credential(username, password, app_id, app_secret),
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from None

    if not output_json:
        click.echo(f"Federating {request.domain} in tenant {request.tenant_id}")
        click.echo(f"  Federation server: {request.server_host}")
        click.echo("")

    try:
        record = federate_domain(
            request,
            config,
            session=session_from_token(tenant, access_token),
            prompt=prompt_credential,
            select_default=selector,
        )
    except VerificationPendingError as e:
        from adfsfed.core.dns import verification_instructions

        # Not fatal: the run ends here until DNS is updated
        if output_json:
            output_result(e.to_dict(), as_json=True)
        else:
            click.echo(f"Error: {e}")
            click.echo("")
            click.echo(verification_instructions(e.domain, e.record_text, e.ttl), nl=False)
        return
    except (PreconditionError, AuthenticationError, CertificateError, ConfigurationError, DirectoryApiError) as e:
        error_result(str(e), output_json)
    finally:
        if protocol_log is not None:
            _write_protocol_log(protocol_log, quiet=output_json)

    if output_json:
        output_result({"status": "federated", "domain": record.to_dict()}, as_json=True)
        return

    click.echo("Domain federated successfully!")
    click.echo("")
    click.echo(f"  Domain: {record.name}")
    click.echo(f"  Status: {record.status.value}")
    click.echo(f"  Authentication: {record.authentication.value}")
    click.echo(f"  Default: {record.is_default}")
    if record.federation:
        click.echo(f"  Issuer URI: {record.federation.issuer_uri}")
        click.echo(f"  Passive sign-in: {record.federation.passive_sign_in_uri}")
        click.echo(f"  Active sign-in: {record.federation.active_sign_in_uri}")
        click.echo(f"  Metadata exchange: {record.federation.metadata_exchange_uri}")


def _write_protocol_log(path: Path, quiet: bool = False) -> None:
    protocol_logger = get_protocol_logger()
    flow = protocol_logger.last_flow
    if flow is None:
        if not quiet:
            click.echo("No Graph requests were made; protocol log not written", err=True)
        return
    try:
        flow.write(path, reveal=protocol_logger.reveal_sensitive)
    except OSError as e:
        raise click.ClickException(f"Could not write protocol log {path}: {e}") from e
    if not quiet:
        click.echo(f"Protocol log written to {path}", err=True)


@click.command()
@click.argument("server_host")
@click.argument("domain")
@json_option
def endpoints(server_host: str, domain: str, output_json: bool) -> None:
    """Show the federation endpoints for DOMAIN on SERVER_HOST.

    Nothing is contacted; the endpoints are derived from the names.
    """
    result = build_federation_endpoints(server_host, domain)

    if output_json:
        output_result(result.to_dict(), as_json=True)
        return

    click.echo(f"Active logon:      {result.active_logon}")
    click.echo(f"Passive logon:     {result.passive_logon}")
    click.echo(f"Logoff:            {result.logoff}")
    click.echo(f"Metadata exchange: {result.metadata_exchange}")
    click.echo(f"Issuer:            {result.issuer}")
