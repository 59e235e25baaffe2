"""Token-signing certificate utilities."""

from adfsfed.core.crypto.certs import (
    PRECONDITION_MESSAGE,
    AdfsCertificateStore,
    CertificateInfo,
    SigningCertificate,
    decode_certificate,
    encode_certificate,
    get_certificate_info,
    is_certificate_valid,
    load_certificate,
    load_certificate_bytes,
    obtain_signing_certificate,
    save_certificate,
    signing_certificate_from_file,
)

__all__ = [
    "PRECONDITION_MESSAGE",
    "AdfsCertificateStore",
    "CertificateInfo",
    "SigningCertificate",
    "decode_certificate",
    "encode_certificate",
    "get_certificate_info",
    "is_certificate_valid",
    "load_certificate",
    "load_certificate_bytes",
    "obtain_signing_certificate",
    "save_certificate",
    "signing_certificate_from_file",
]
