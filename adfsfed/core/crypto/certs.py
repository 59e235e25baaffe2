"""Token-signing certificate handling.

Obtains the federation server's token-signing certificate, either as a
caller-supplied base64 string, from a PEM/DER file, or exported from the
local AD FS certificate store, and inspects it for display.
"""

from __future__ import annotations

import base64
import binascii
import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from adfsfed.core.errors import (
    CertificateExportError,
    CertificateLoadError,
    PreconditionError,
)

logger = logging.getLogger(__name__)

PRECONDITION_MESSAGE = (
    "No token-signing certificate available: "
    "must run on federation server, or supply a certificate"
)

# Writes the primary token-signing certificate to {path} in DER form
EXPORT_SCRIPT = (
    "$ErrorActionPreference = 'Stop'; "
    "$cert = Get-AdfsCertificate -CertificateType Token-Signing "
    "| Where-Object {{ $_.IsPrimary }} | Select-Object -First 1; "
    "if (-not $cert) {{ throw 'No primary token-signing certificate' }}; "
    "[System.IO.File]::WriteAllBytes('{path}', "
    "$cert.Certificate.Export([System.Security.Cryptography.X509Certificates.X509ContentType]::Cert))"
)

AVAILABILITY_SCRIPT = "if (Get-Command Get-AdfsCertificate -ErrorAction SilentlyContinue) { exit 0 } else { exit 1 }"


@dataclass
class CertificateInfo:
    """Information extracted from an X.509 certificate."""

    subject: str
    issuer: str
    serial_number: str
    not_before: datetime
    not_after: datetime
    thumbprint: str
    fingerprint_sha256: str
    is_self_signed: bool
    key_type: str
    key_size: int


@dataclass
class SigningCertificate:
    """A token-signing certificate ready for the federation trust."""

    encoded: str
    source: str
    certificate: x509.Certificate | None = None

    @property
    def base64(self) -> str:
        """Base64 DER as sent to the directory."""
        return self.encoded


class AdfsCertificateStore:
    """Access to the local AD FS token-signing certificate.

    Drives the AD FS PowerShell module, which is only present on a
    federation server.
    """

    def __init__(self, powershell: str = "powershell") -> None:
        self.powershell = powershell

    def _run(self, script: str) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [self.powershell, "-NoProfile", "-NonInteractive", "-Command", script],
            capture_output=True,
            text=True,
        )

    def is_available(self) -> bool:
        """Check whether the AD FS certificate cmdlets can be used here."""
        if shutil.which(self.powershell) is None:
            logger.debug(f"PowerShell executable not found: {self.powershell}")
            return False

        result = self._run(AVAILABILITY_SCRIPT)
        if result.returncode != 0:
            logger.debug("AD FS PowerShell module is not available")
            return False
        return True

    def export_token_signing_certificate(self) -> bytes:
        """Export the primary token-signing certificate as DER bytes.

        The export goes through a temporary directory that is removed
        whether or not the export succeeds.

        Raises:
            CertificateExportError: If PowerShell fails or writes nothing.
        """
        with tempfile.TemporaryDirectory(prefix="adfsfed-") as temp_dir:
            export_path = Path(temp_dir) / "token-signing.cer"
            logger.info("Exporting token-signing certificate from AD FS")
            result = self._run(EXPORT_SCRIPT.format(path=export_path))

            if result.returncode != 0:
                raise CertificateExportError(
                    f"Get-AdfsCertificate failed: {result.stderr.strip() or result.stdout.strip()}"
                )
            if not export_path.exists():
                raise CertificateExportError("AD FS did not write the exported certificate")

            return export_path.read_bytes()


def load_certificate_bytes(data: bytes) -> x509.Certificate:
    """Load a certificate from PEM or DER bytes.

    Raises:
        CertificateLoadError: If the data is not a certificate.
    """
    try:
        if data.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise CertificateLoadError(f"Failed to decode certificate: {e}") from e


def load_certificate(path: Path) -> x509.Certificate:
    """Load a certificate from a PEM or DER file.

    Raises:
        CertificateLoadError: If the certificate cannot be loaded.
    """
    if not path.exists():
        raise CertificateLoadError(f"Certificate file not found: {path}")

    try:
        return load_certificate_bytes(path.read_bytes())
    except CertificateLoadError as e:
        raise CertificateLoadError(f"Failed to load certificate from {path}: {e}") from e


def encode_certificate(cert: x509.Certificate) -> str:
    """Get the base64 of a certificate's canonical DER encoding."""
    return base64.b64encode(cert.public_bytes(serialization.Encoding.DER)).decode("ascii")


def decode_certificate(encoded: str) -> x509.Certificate:
    """Decode a base64 DER certificate string.

    Raises:
        CertificateLoadError: If the string is not a base64 certificate.
    """
    try:
        der = base64.b64decode("".join(encoded.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CertificateLoadError(f"Certificate is not valid base64: {e}") from e
    return load_certificate_bytes(der)


def get_certificate_info(cert: x509.Certificate) -> CertificateInfo:
    """Extract information from an X.509 certificate."""
    public_key = cert.public_key()
    if isinstance(public_key, rsa.RSAPublicKey):
        key_type = "RSA"
        key_size = public_key.key_size
    else:
        key_type = type(public_key).__name__
        key_size = 0

    return CertificateInfo(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        serial_number=format(cert.serial_number, "x"),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        # Windows shows SHA-1 thumbprints, uppercase
        thumbprint=cert.fingerprint(hashes.SHA1()).hex().upper(),  # noqa: S303
        fingerprint_sha256=cert.fingerprint(hashes.SHA256()).hex(),
        is_self_signed=cert.subject == cert.issuer,
        key_type=key_type,
        key_size=key_size,
    )


def is_certificate_valid(cert: x509.Certificate) -> bool:
    """Check if a certificate is currently valid (not expired)."""
    now = datetime.now(UTC)
    return cert.not_valid_before_utc <= now <= cert.not_valid_after_utc


def obtain_signing_certificate(
    certificate: str | None = None,
    store: AdfsCertificateStore | None = None,
) -> SigningCertificate:
    """Get the token-signing certificate for the federation trust.

    A supplied certificate string is used verbatim and the store is never
    consulted. Otherwise the certificate is exported from the AD FS store
    and re-encoded as canonical DER.

    Args:
        certificate: Base64 DER certificate supplied by the caller.
        store: Federation server certificate store.

    Returns:
        SigningCertificate with the base64 encoding.

    Raises:
        PreconditionError: If no certificate was supplied and no store is available.
        CertificateExportError: If the store export fails.
        CertificateLoadError: If the exported data is not a certificate.
    """
    if certificate is not None:
        if not certificate.strip():
            raise CertificateLoadError("Supplied certificate is empty")
        logger.info("Using supplied token-signing certificate")

        # Decoded for display only; the string itself goes to the directory
        try:
            decoded: x509.Certificate | None = decode_certificate(certificate)
        except CertificateLoadError:
            decoded = None
        return SigningCertificate(encoded=certificate, source="supplied", certificate=decoded)

    if store is None or not store.is_available():
        raise PreconditionError(PRECONDITION_MESSAGE)

    raw = store.export_token_signing_certificate()
    cert = load_certificate_bytes(raw)

    if not is_certificate_valid(cert):
        logger.warning(
            f"Token-signing certificate is outside its validity period "
            f"(not after {cert.not_valid_after_utc:%Y-%m-%d})"
        )

    return SigningCertificate(encoded=encode_certificate(cert), source="adfs", certificate=cert)


def signing_certificate_from_file(path: Path) -> SigningCertificate:
    """Load a token-signing certificate from a PEM or DER file."""
    cert = load_certificate(path)
    return SigningCertificate(encoded=encode_certificate(cert), source="file", certificate=cert)


def save_certificate(cert: x509.Certificate, path: Path, encoding: str = "der") -> None:
    """Save a certificate to a DER or PEM file.

    Args:
        cert: X.509 certificate to save.
        path: Path to write the certificate file.
        encoding: "der" or "pem".
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    if encoding == "pem":
        data = cert.public_bytes(serialization.Encoding.PEM)
    else:
        data = cert.public_bytes(serialization.Encoding.DER)
    path.write_bytes(data)
