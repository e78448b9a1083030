"""
Error taxonomy for domain lifecycle operations.

Every error carries a stable ``kind`` so callers (the HTTP layer in
particular) can branch on the type instead of the message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    PROVIDER = "provider"
    STATE = "state"


class DomainError(Exception):
    """Base class for all domain lifecycle errors."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "detail": self.message}


class ValidationError(DomainError):
    """Malformed hostname or subdomain label."""

    kind = ErrorKind.VALIDATION


class ConflictError(DomainError):
    """Hostname taken, reserved label, or duplicate funnel link."""

    kind = ErrorKind.CONFLICT


class NotFoundError(DomainError):
    """Domain or funnel missing, or not owned by the caller."""

    kind = ErrorKind.NOT_FOUND


class ProviderError(DomainError):
    """Provisioning provider call failed or provider is unconfigured."""

    kind = ErrorKind.PROVIDER


class ProviderNotFoundError(ProviderError):
    """Provider resource is already gone."""


class StateError(DomainError):
    """Illegal state transition."""

    kind = ErrorKind.STATE
