"""Token-signing certificate CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from adfsfed.cli.common import error_result, get_config, json_option, output_result


@click.group()
def cert() -> None:
    """Inspect and export the AD FS token-signing certificate."""
    pass


@cert.command("show")
@click.option(
    "--certificate-file",
    "-f",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),  # type: ignore[type-var]
    help="Certificate file to inspect instead of the AD FS store",
)
@json_option
@click.pass_context
def cert_show(ctx: click.Context, certificate_file: Path | None, output_json: bool) -> None:
    """Show the token-signing certificate.

    Reads the certificate from AD FS (on the federation server) or from
    a PEM/DER file.
    """
    from adfsfed.core.crypto import (
        AdfsCertificateStore,
        get_certificate_info,
        is_certificate_valid,
        obtain_signing_certificate,
        signing_certificate_from_file,
    )
    from adfsfed.core.errors import CertificateError, PreconditionError

    config = get_config(ctx)

    try:
        if certificate_file is not None:
            signing = signing_certificate_from_file(certificate_file)
        else:
            signing = obtain_signing_certificate(store=AdfsCertificateStore(config.federation.powershell))
    except (PreconditionError, CertificateError) as e:
        error_result(str(e), output_json)

    if signing.certificate is None:
        error_result(f"Token-signing certificate from {signing.source} could not be decoded", output_json)

    info = get_certificate_info(signing.certificate)
    valid = is_certificate_valid(signing.certificate)

    if output_json:
        data: dict[str, Any] = {
            "source": signing.source,
            "subject": info.subject,
            "issuer": info.issuer,
            "serial_number": info.serial_number,
            "not_before": info.not_before.isoformat(),
            "not_after": info.not_after.isoformat(),
            "thumbprint": info.thumbprint,
            "fingerprint_sha256": info.fingerprint_sha256,
            "key_type": info.key_type,
            "key_size": info.key_size,
            "valid": valid,
            "certificate": signing.base64,
        }
        output_result(data, as_json=True)
        return

    click.echo(f"Source: {signing.source}")
    click.echo(f"  Subject: {info.subject}")
    click.echo(f"  Issuer: {info.issuer}")
    click.echo(f"  Thumbprint: {info.thumbprint}")
    click.echo(f"  Key: {info.key_type} {info.key_size}")
    click.echo(f"  Valid from: {info.not_before.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    click.echo(f"  Valid until: {info.not_after.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    click.echo(f"  Status: {'Valid' if valid else 'EXPIRED or not yet valid'}")


@cert.command("export")
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    help="File to write the certificate to",
)
@click.option(
    "--format",
    "encoding",
    type=click.Choice(["der", "pem"]),
    default="der",
    help="Output encoding",
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite an existing file",
)
@click.pass_context
def cert_export(ctx: click.Context, output: Path, encoding: str, force: bool) -> None:
    """Export the AD FS token-signing certificate to a file.

    The file can be passed to 'adfsfed federate --certificate-file' on a
    machine that is not the federation server.
    """
    from adfsfed.core.crypto import AdfsCertificateStore, obtain_signing_certificate, save_certificate
    from adfsfed.core.errors import CertificateError, PreconditionError

    config = get_config(ctx)

    if output.exists() and not force:
        raise click.ClickException(f"{output} already exists. Use --force to overwrite.")

    try:
        signing = obtain_signing_certificate(store=AdfsCertificateStore(config.federation.powershell))
    except (PreconditionError, CertificateError) as e:
        raise click.ClickException(str(e)) from None

    if signing.certificate is None:
        raise click.ClickException(f"Token-signing certificate from {signing.source} could not be decoded")

    save_certificate(signing.certificate, output, encoding)
    click.echo(f"Token-signing certificate written to: {output}")
