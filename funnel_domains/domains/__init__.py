"""Custom domain and subdomain lifecycle for published funnels."""

from .cache import DomainCache
from .errors import (
    ConflictError,
    DomainError,
    ErrorKind,
    NotFoundError,
    ProviderError,
    ProviderNotFoundError,
    StateError,
    ValidationError,
)
from .models import (
    Domain,
    DomainStatus,
    DomainType,
    Funnel,
    FunnelDomain,
    FunnelStatus,
    SslStatus,
)
from .service import DomainLifecycleService, VerificationResult
from .store import DomainStore, DuplicateKeyError

__all__ = [
    "ConflictError",
    "Domain",
    "DomainCache",
    "DomainError",
    "DomainLifecycleService",
    "DomainStatus",
    "DomainStore",
    "DomainType",
    "DuplicateKeyError",
    "ErrorKind",
    "Funnel",
    "FunnelDomain",
    "FunnelStatus",
    "NotFoundError",
    "ProviderError",
    "ProviderNotFoundError",
    "SslStatus",
    "StateError",
    "ValidationError",
    "VerificationResult",
]
