"""Provisioning provider clients."""

from .cloudflare import (
    CloudflareClient,
    CustomHostname,
    DNSRecord,
    OwnershipVerification,
    ProviderConfig,
    SslInfo,
    SslValidationRecord,
)

__all__ = [
    "CloudflareClient",
    "CustomHostname",
    "DNSRecord",
    "OwnershipVerification",
    "ProviderConfig",
    "SslInfo",
    "SslValidationRecord",
]
