"""
Hostname and subdomain validation for custom domains.
"""

import re
from dataclasses import dataclass
from typing import Optional

import tldextract

from .errors import ConflictError, ValidationError

MAX_HOSTNAME_LENGTH = 253
MAX_LABEL_LENGTH = 63

RESERVED_SUBDOMAINS = frozenset({
    "www",
    "mail",
    "admin",
    "api",
    "ftp",
    "smtp",
    "pop",
    "ns1",
    "ns2",
    "cpanel",
    "webmail",
})

_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
_TLD_RE = re.compile(r"^[a-z]{2,}$")

# Bundled public suffix snapshot only, never fetched at runtime
_extract = tldextract.TLDExtract(suffix_list_urls=())


@dataclass(frozen=True)
class ParsedDomain:
    """A hostname split on public-suffix boundaries."""

    subdomain: Optional[str]
    domain: str
    tld: str
    root_domain: str


def _is_valid_label(label: str) -> bool:
    return 0 < len(label) <= MAX_LABEL_LENGTH and bool(_LABEL_RE.match(label))


def validate_hostname(value) -> str:
    """
    Normalize and validate a fully qualified hostname.

    Returns the trimmed, lowercased hostname. Raises ValidationError.
    """
    if not isinstance(value, str):
        raise ValidationError("Hostname must be a string")

    hostname = value.strip().lower()
    if hostname.endswith("."):
        hostname = hostname[:-1]

    if not hostname:
        raise ValidationError("Hostname is required")
    if len(hostname) > MAX_HOSTNAME_LENGTH:
        raise ValidationError(
            f"Hostname must be at most {MAX_HOSTNAME_LENGTH} characters"
        )

    labels = hostname.split(".")
    if len(labels) < 2:
        raise ValidationError("Hostname must include a domain and a TLD")

    for label in labels:
        if not _is_valid_label(label):
            raise ValidationError(f"Invalid hostname label: '{label}'")

    if not _TLD_RE.match(labels[-1]):
        raise ValidationError(f"Invalid top-level domain: '{labels[-1]}'")

    return hostname


def validate_subdomain(value) -> str:
    """Normalize and validate a platform subdomain label."""
    if not isinstance(value, str):
        raise ValidationError("Subdomain must be a string")

    label = value.strip().lower()
    if not label:
        raise ValidationError("Subdomain is required")
    if len(label) > MAX_LABEL_LENGTH:
        raise ValidationError(
            f"Subdomain must be at most {MAX_LABEL_LENGTH} characters"
        )
    if not _LABEL_RE.match(label):
        raise ValidationError(
            "Subdomain may only contain lowercase letters, numbers and "
            "hyphens, and cannot start or end with a hyphen"
        )
    if label in RESERVED_SUBDOMAINS:
        raise ConflictError(f"Subdomain '{label}' is reserved")

    return label


def parse_domain(hostname: str) -> ParsedDomain:
    """Split a hostname into subdomain, domain and (possibly multi-part) TLD."""
    ext = _extract(hostname)
    if not ext.domain or not ext.suffix:
        raise ValidationError(f"Cannot derive root domain from: {hostname}")

    return ParsedDomain(
        subdomain=ext.subdomain or None,
        domain=ext.domain,
        tld=ext.suffix,
        root_domain=f"{ext.domain}.{ext.suffix}",
    )


def relative_record_name(name: str, root_domain: str) -> str:
    """
    Strip the ``.root_domain`` suffix the provider appends to record names.

    ``_cf-custom-hostname.www.example.com`` under ``example.com`` becomes
    ``_cf-custom-hostname.www``, which is what registrar DNS panels expect.
    """
    name = name.lower().rstrip(".")
    suffix = f".{root_domain.lower()}"
    if name.endswith(suffix):
        return name[: -len(suffix)]
    return name
