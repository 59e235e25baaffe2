"""DNS TXT lookups for domain ownership checks."""

from __future__ import annotations

import logging

import dns.resolver

logger = logging.getLogger(__name__)


def resolve_txt_records(domain: str, nameservers: list[str] | None = None) -> list[str]:
    """Resolve the public TXT records of a domain.

    Args:
        domain: Domain to query.
        nameservers: Nameservers to query instead of the system resolver.

    Returns:
        TXT record values, with multi-string records joined. Empty if the
        domain has no TXT records.
    """
    resolver = dns.resolver.Resolver(configure=not nameservers)
    if nameservers:
        resolver.nameservers = list(nameservers)

    logger.debug(f"Resolving TXT records for {domain}")

    try:
        answers = resolver.resolve(domain, "TXT")
    except dns.resolver.NXDOMAIN:
        logger.warning(f"No DNS record for {domain}")
        return []
    except dns.resolver.NoAnswer:
        logger.warning(f"No TXT record for {domain}")
        return []
    except dns.resolver.NoNameservers:
        logger.warning(f"No nameservers answered for {domain}")
        return []

    records = []
    for rdata in answers:
        # TXT records may have multiple strings, join them
        value = "".join(s.decode("utf-8", errors="replace") for s in rdata.strings)
        logger.debug(f"Found TXT record: {value}")
        records.append(value)
    return records


def txt_record_present(domain: str, expected: str, nameservers: list[str] | None = None) -> bool:
    """Check whether a domain publishes the expected TXT value."""
    found = expected in resolve_txt_records(domain, nameservers)
    if found:
        logger.info(f"TXT record {expected} found for {domain}")
    return found


def verification_instructions(domain: str, text: str | None, ttl: int | None = None) -> str:
    """Human-readable instructions for publishing a TXT verification record.

    Args:
        domain: Domain to verify.
        text: TXT value issued by the directory.
        ttl: Suggested record TTL in seconds.

    Returns:
        Instructions string.
    """
    if not text:
        return (
            f"The directory did not issue a TXT verification record for {domain}.\n"
            f"Check the domain in the tenant, then run this command again.\n"
        )

    lines = [
        f"To verify ownership of {domain}, add the following DNS TXT record:",
        "",
        f"Record Name: {domain} (@)",
        "Record Type: TXT",
        f"Record Value: {text}",
    ]
    if ttl:
        lines.append(f"TTL: {ttl}")
    lines.extend([
        "",
        "After the record has propagated, run this command again.",
    ])
    return "\n".join(lines) + "\n"
