"""
Domain, funnel link and funnel data models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class DomainType(str, Enum):
    CUSTOM_DOMAIN = "CUSTOM_DOMAIN"
    SUBDOMAIN = "SUBDOMAIN"


class DomainStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    ACTIVE = "ACTIVE"


class SslStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    ERROR = "ERROR"


class FunnelStatus(str, Enum):
    DRAFT = "DRAFT"
    LIVE = "LIVE"
    ARCHIVED = "ARCHIVED"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Domain:
    """A hostname owned by one user and routable to that user's funnels."""

    hostname: str
    type: DomainType
    owner_id: str
    status: DomainStatus = DomainStatus.PENDING
    ssl_status: SslStatus = SslStatus.PENDING
    id: Optional[int] = None
    provider_hostname_id: Optional[str] = None
    provider_zone_id: Optional[str] = None
    provider_record_id: Optional[str] = None
    verification_token: Optional[str] = None
    ownership_verification: Optional[dict] = None
    dns_instructions: Optional[dict] = None
    ssl_validation_records: Optional[List[dict]] = None
    last_verified_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def is_active(self) -> bool:
        return self.status == DomainStatus.ACTIVE

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "hostname": self.hostname,
            "type": self.type.value,
            "status": self.status.value,
            "ssl_status": self.ssl_status.value,
            "owner_id": self.owner_id,
            "provider_hostname_id": self.provider_hostname_id,
            "provider_zone_id": self.provider_zone_id,
            "provider_record_id": self.provider_record_id,
            "verification_token": self.verification_token,
            "ownership_verification": self.ownership_verification,
            "dns_instructions": self.dns_instructions,
            "ssl_validation_records": self.ssl_validation_records,
            "last_verified_at": _iso(self.last_verified_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Domain":
        """Create from dictionary."""
        return cls(
            id=data.get("id"),
            hostname=data["hostname"],
            type=DomainType(data["type"]),
            owner_id=data["owner_id"],
            status=DomainStatus(data.get("status", DomainStatus.PENDING.value)),
            ssl_status=SslStatus(data.get("ssl_status", SslStatus.PENDING.value)),
            provider_hostname_id=data.get("provider_hostname_id"),
            provider_zone_id=data.get("provider_zone_id"),
            provider_record_id=data.get("provider_record_id"),
            verification_token=data.get("verification_token"),
            ownership_verification=data.get("ownership_verification"),
            dns_instructions=data.get("dns_instructions"),
            ssl_validation_records=data.get("ssl_validation_records"),
            last_verified_at=_parse_dt(data.get("last_verified_at")),
            created_at=_parse_dt(data.get("created_at")) or _now(),
            updated_at=_parse_dt(data.get("updated_at")) or _now(),
        )

    def to_api_response(self) -> dict:
        """Convert to API response, hiding provider ids and the token once active."""
        resp = {
            "id": self.id,
            "hostname": self.hostname,
            "type": self.type.value,
            "status": self.status.value,
            "ssl_status": self.ssl_status.value,
            "ownership_verification": self.ownership_verification,
            "dns_instructions": self.dns_instructions,
            "ssl_validation_records": self.ssl_validation_records,
            "last_verified_at": _iso(self.last_verified_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if not self.is_active:
            resp["verification_token"] = self.verification_token
        return resp


@dataclass
class FunnelDomain:
    """Link between a funnel and a domain it is served on."""

    funnel_id: int
    domain_id: int
    is_active: bool = True
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "funnel_id": self.funnel_id,
            "domain_id": self.domain_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FunnelDomain":
        return cls(
            funnel_id=int(data["funnel_id"]),
            domain_id=int(data["domain_id"]),
            is_active=data.get("is_active", True),
            created_at=_parse_dt(data.get("created_at")) or _now(),
        )


@dataclass
class Funnel:
    """
    Published funnel as seen by the domain engine.

    Funnels are authored elsewhere; only ownership and publication status
    matter here. ``pages`` is passed through untouched to public readers.
    """

    id: int
    owner_id: str
    name: str = ""
    status: FunnelStatus = FunnelStatus.DRAFT
    pages: List[dict] = field(default_factory=list)

    @property
    def is_live(self) -> bool:
        return self.status == FunnelStatus.LIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "status": self.status.value,
            "pages": self.pages,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Funnel":
        return cls(
            id=int(data["id"]),
            owner_id=data["owner_id"],
            name=data.get("name", ""),
            status=FunnelStatus(data.get("status", FunnelStatus.DRAFT.value)),
            pages=data.get("pages") or [],
        )

    def to_public_response(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "pages": self.pages,
        }
