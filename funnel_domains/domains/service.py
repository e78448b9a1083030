"""
Domain lifecycle orchestration.

Coordinates validation, the domain store and the provisioning provider
for custom domains and platform subdomains. Custom domains move through

    PENDING -> VERIFIED -> ACTIVE

as the provider reports hostname and certificate progress; subdomains are
created directly as ACTIVE because the platform owns their zone and
certificate. Nothing ever leaves ACTIVE.

State only advances when a caller invokes ``verify_domain``; there is no
background poller.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, List, Optional

from .cache import DomainCache
from .errors import (
    ConflictError,
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
    SslStatus,
)
from .store import DomainStore, DuplicateKeyError
from .validation import (
    parse_domain,
    relative_record_name,
    validate_hostname,
    validate_subdomain,
)

logger = logging.getLogger("funnel_domains.domains.service")

SUBDOMAIN_REQUIRED = "Please provide a subdomain (e.g. www.example.com)"
HOSTNAME_TAKEN = "This domain name is already registered"
SUBDOMAIN_TAKEN = "This subdomain is already taken"
PUBLIC_NOT_FOUND = "Funnel not found"
DEFAULT_MAX_CUSTOM_DOMAINS = 3
DEFAULT_MAX_SUBDOMAINS = 3
FULLY_ACTIVE_MESSAGE = "Congratulations! Your domain is fully configured and active."


@dataclass
class VerificationResult:
    domain: Domain
    message: str
    is_fully_active: bool

    def to_api_response(self) -> dict:
        return {
            "domain": self.domain.to_api_response(),
            "message": self.message,
            "is_fully_active": self.is_fully_active,
        }


def map_ssl_status(provider_status: str) -> SslStatus:
    """Map a provider certificate status onto SslStatus."""
    if provider_status == "active":
        return SslStatus.ACTIVE
    if provider_status == "pending_validation":
        return SslStatus.PENDING
    return SslStatus.ERROR


class DomainLifecycleService:
    """
    Creates, verifies, links and tears down funnel domains.

    ``provider`` is any object with the CloudflareClient interface.
    ``cache`` is optional; without it owner listings are read straight
    from the store. ``max_custom_domains`` and ``max_subdomains`` cap how
    many domains of each type one owner may hold.
    """

    def __init__(
        self,
        store: DomainStore,
        provider,
        cache: Optional[DomainCache] = None,
        max_custom_domains: int = DEFAULT_MAX_CUSTOM_DOMAINS,
        max_subdomains: int = DEFAULT_MAX_SUBDOMAINS,
    ):
        self.store = store
        self.provider = provider
        self.cache = cache
        self.max_custom_domains = max_custom_domains
        self.max_subdomains = max_subdomains

    # ── Helpers ──────────────────────────────────────────────────────

    async def _invalidate_owner_cache(self, owner_id: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.invalidate(owner_id)
        except Exception as e:
            logger.warning(f"Cache invalidation failed for owner {owner_id}: {e}")

    async def _get_owned_domain(self, domain_id: int, owner_id: str) -> Domain:
        domain = await self.store.get_domain(domain_id, owner_id=owner_id)
        if not domain:
            raise NotFoundError("Domain not found")
        return domain

    async def _get_owned_funnel(self, funnel_id: int, owner_id: str) -> Funnel:
        funnel = await self.store.get_funnel(funnel_id, owner_id=owner_id)
        if not funnel:
            raise NotFoundError("Funnel not found")
        return funnel

    async def _check_domain_limit(
        self, owner_id: str, domain_type: DomainType, limit: int, noun: str
    ) -> None:
        domains = await self.store.list_domains(owner_id)
        count = sum(1 for d in domains if d.type == domain_type)
        if count >= limit:
            logger.warning(f"Owner {owner_id} has reached the {noun} limit of {limit}")
            raise ConflictError(f"You have reached your limit of {limit} {noun}(s).")

    async def _best_effort(self, description: str, call: Awaitable) -> None:
        """Await a provider teardown call, tolerating already-deleted resources."""
        try:
            await call
        except ProviderNotFoundError:
            logger.warning(f"{description} not found at provider (already deleted)")
        except ProviderError as e:
            logger.error(f"Failed to delete {description} at provider: {e.message}")

    # ── Creation ─────────────────────────────────────────────────────

    async def create_custom_domain(self, owner_id: str, hostname: str) -> Domain:
        """
        Register a customer-owned hostname with the provider.

        The domain is stored as PENDING along with the DNS records the
        customer must add. Any provider failure aborts before anything is
        persisted.
        """
        hostname = validate_hostname(hostname)
        parsed = parse_domain(hostname)

        if not parsed.subdomain:
            raise ValidationError(SUBDOMAIN_REQUIRED)

        await self._check_domain_limit(
            owner_id, DomainType.CUSTOM_DOMAIN, self.max_custom_domains, "custom domain"
        )

        if await self.store.get_domain_by_hostname(hostname):
            raise ConflictError(HOSTNAME_TAKEN)

        if not self.provider.is_configured():
            raise ProviderError("Provider is not configured for custom domain creation")

        logger.info(f"Creating custom hostname for {hostname}")
        try:
            created = await self.provider.create_custom_hostname(hostname)
            detailed = await self.provider.get_custom_hostname(created.id)
        except ProviderError as e:
            logger.error(f"Provider error creating {hostname}: {e.message}")
            raise ProviderError(f"Failed to create custom domain: {e.message}") from e

        config = self.provider.get_config()

        ownership = created.ownership_verification or detailed.ownership_verification
        ownership_verification = None
        if ownership:
            ownership_verification = {
                "type": ownership.type,
                "name": relative_record_name(ownership.name, parsed.root_domain),
                "value": ownership.value,
                "purpose": "Domain Ownership Verification",
            }

        validation_records = None
        if detailed.ssl.validation_records:
            validation_records = [
                r.model_dump(exclude_none=True)
                for r in detailed.ssl.validation_records
            ]

        domain = Domain(
            hostname=hostname,
            type=DomainType.CUSTOM_DOMAIN,
            owner_id=owner_id,
            status=DomainStatus.PENDING,
            ssl_status=(
                SslStatus.ACTIVE
                if detailed.ssl.status == "active"
                else SslStatus.PENDING
            ),
            provider_hostname_id=created.id,
            provider_zone_id=config.zone_id,
            verification_token=ownership.value if ownership else None,
            ownership_verification=ownership_verification,
            dns_instructions={
                "type": "CNAME",
                "name": parsed.subdomain,
                "value": config.saas_target,
                "purpose": "Live Traffic",
            },
            ssl_validation_records=validation_records,
        )

        try:
            await self.store.create_domain(domain)
        except DuplicateKeyError:
            # Lost the race to a concurrent request for the same hostname
            logger.warning(f"Hostname {hostname} claimed concurrently; releasing provider hostname")
            await self._best_effort(
                f"Custom hostname {created.id}",
                self.provider.delete_custom_hostname(created.id),
            )
            raise ConflictError(HOSTNAME_TAKEN)

        logger.info(f"Custom domain created with id {domain.id}: {hostname}")
        await self._invalidate_owner_cache(owner_id)
        return domain

    async def create_subdomain(self, owner_id: str, subdomain: str) -> Domain:
        """Create a platform subdomain, immediately ACTIVE."""
        label = validate_subdomain(subdomain)
        await self._check_domain_limit(
            owner_id, DomainType.SUBDOMAIN, self.max_subdomains, "subdomain"
        )

        config = self.provider.get_config()
        hostname = f"{label}.{config.platform_main_domain}"

        if await self.store.get_domain_by_hostname(hostname):
            raise ConflictError(SUBDOMAIN_TAKEN)

        if not self.provider.is_configured():
            raise ProviderError("Provider is not configured for subdomain creation")

        logger.info(f"Creating subdomain {hostname}")
        try:
            record = await self.provider.create_subdomain_record(label)
        except ProviderError as e:
            logger.error(f"Provider error creating subdomain {hostname}: {e.message}")
            raise ProviderError(f"Failed to create subdomain: {e.message}") from e

        domain = Domain(
            hostname=hostname,
            type=DomainType.SUBDOMAIN,
            owner_id=owner_id,
            status=DomainStatus.ACTIVE,
            ssl_status=SslStatus.ACTIVE,
            provider_zone_id=config.zone_id,
            provider_record_id=record.id,
            last_verified_at=datetime.now(timezone.utc),
        )

        try:
            await self.store.create_domain(domain)
        except DuplicateKeyError:
            logger.warning(f"Subdomain {hostname} claimed concurrently; releasing DNS record")
            await self._best_effort(
                f"DNS record {record.id}",
                self.provider.delete_dns_record(config.zone_id, record.id),
            )
            raise ConflictError(SUBDOMAIN_TAKEN)

        logger.info(f"Subdomain created with id {domain.id}: {hostname}")
        await self._invalidate_owner_cache(owner_id)
        return domain

    # ── Verification ─────────────────────────────────────────────────

    async def verify_domain(self, domain_id: int, owner_id: str) -> VerificationResult:
        """
        Pull the provider's view of a custom domain and advance its state.

        Hostname and certificate both active makes the domain ACTIVE;
        hostname active alone makes it VERIFIED; otherwise status is left
        as it was.
        """
        domain = await self._get_owned_domain(domain_id, owner_id)

        if domain.status == DomainStatus.ACTIVE:
            raise StateError("Domain is already active")

        if not domain.provider_hostname_id:
            raise StateError("Domain is not configured correctly")

        if not self.provider.is_configured():
            logger.warning(
                f"Provider not configured; returning stored status for {domain.hostname}"
            )
            return VerificationResult(
                domain=domain,
                message=(
                    "Verification is unavailable right now. "
                    f'Last known status: "{domain.status.value}".'
                ),
                is_fully_active=False,
            )

        logger.info(f"Checking verification status for {domain.hostname}")
        try:
            remote = await self.provider.get_custom_hostname(domain.provider_hostname_id)
        except ProviderError as e:
            logger.error(f"Provider error verifying {domain.hostname}: {e.message}")
            raise ProviderError(f"Failed to verify domain: {e.message}") from e

        domain.ssl_status = map_ssl_status(remote.ssl.status)
        domain.last_verified_at = datetime.now(timezone.utc)

        message = (
            "Verification is still in progress. "
            f'Status: "{remote.status}", SSL: "{remote.ssl.status}".'
        )
        is_fully_active = False

        if remote.status == "active" and remote.ssl.status == "active":
            domain.status = DomainStatus.ACTIVE
            message = FULLY_ACTIVE_MESSAGE
            is_fully_active = True
        elif remote.status == "active":
            domain.status = DomainStatus.VERIFIED

        if remote.ssl.validation_records:
            domain.ssl_validation_records = [
                r.model_dump(exclude_none=True) for r in remote.ssl.validation_records
            ]

        await self.store.update_domain(domain)
        await self._invalidate_owner_cache(owner_id)

        logger.info(f"Verification result for {domain.hostname}: {message}")
        return VerificationResult(
            domain=domain, message=message, is_fully_active=is_fully_active
        )

    # ── Teardown ─────────────────────────────────────────────────────

    async def delete_domain(self, domain_id: int, owner_id: str) -> Domain:
        """
        Delete a domain and its funnel links.

        Provider resources are removed best-effort; the local row is
        deleted whatever the provider says.
        """
        domain = await self._get_owned_domain(domain_id, owner_id)
        logger.info(f"Starting deletion for {domain.hostname}")

        configured = self.provider.is_configured()

        if domain.provider_hostname_id:
            if configured:
                await self._best_effort(
                    f"Custom hostname {domain.provider_hostname_id}",
                    self.provider.delete_custom_hostname(domain.provider_hostname_id),
                )
            else:
                logger.warning(
                    f"Provider not configured; leaving custom hostname "
                    f"{domain.provider_hostname_id} in place"
                )

        if domain.provider_record_id and domain.provider_zone_id:
            if configured:
                await self._best_effort(
                    f"DNS record {domain.provider_record_id}",
                    self.provider.delete_dns_record(
                        domain.provider_zone_id, domain.provider_record_id
                    ),
                )
            else:
                logger.warning(
                    f"Provider not configured; leaving DNS record "
                    f"{domain.provider_record_id} in place"
                )

        await self.store.delete_domain(domain.id)
        logger.info(f"Deleted domain {domain.hostname}")

        await self._invalidate_owner_cache(owner_id)
        return domain

    # ── Funnel links ─────────────────────────────────────────────────

    async def link_funnel_to_domain(
        self, funnel_id: int, domain_id: int, owner_id: str
    ) -> FunnelDomain:
        await self._get_owned_funnel(funnel_id, owner_id)
        await self._get_owned_domain(domain_id, owner_id)

        if await self.store.get_link(funnel_id, domain_id):
            raise ConflictError("Funnel is already linked to this domain")

        try:
            link = await self.store.create_link(
                FunnelDomain(funnel_id=funnel_id, domain_id=domain_id, is_active=True)
            )
        except DuplicateKeyError:
            raise ConflictError("Funnel is already linked to this domain")

        await self._invalidate_owner_cache(owner_id)
        return link

    async def unlink_funnel_from_domain(
        self, funnel_id: int, domain_id: int, owner_id: str
    ) -> None:
        await self._get_owned_funnel(funnel_id, owner_id)
        await self._get_owned_domain(domain_id, owner_id)

        removed = await self.store.delete_links(funnel_id, domain_id)
        if removed == 0:
            raise NotFoundError("Connection not found")

        await self._invalidate_owner_cache(owner_id)

    async def sync_funnel(self, funnel: Funnel) -> Funnel:
        """
        Upsert the funnel record published by the funnel editor.

        A funnel id already held by another owner is reported as missing.
        """
        existing = await self.store.get_funnel(funnel.id)
        if existing and existing.owner_id != funnel.owner_id:
            raise NotFoundError("Funnel not found")

        await self.store.save_funnel(funnel)
        logger.info(f"Synced funnel {funnel.id} ({funnel.status.value})")
        return funnel

    # ── Reads ────────────────────────────────────────────────────────

    async def get_public_funnel(self, hostname: str, funnel_id: int) -> Funnel:
        """
        Resolve a LIVE funnel served on an ACTIVE domain.

        Every failed precondition raises the same NotFoundError so the
        caller cannot tell which one failed.
        """
        hostname = (hostname or "").strip().lower().rstrip(".")

        domain = await self.store.get_domain_by_hostname(hostname) if hostname else None
        if not domain or domain.status != DomainStatus.ACTIVE:
            logger.debug(f"Public lookup miss: no active domain for {hostname}")
            raise NotFoundError(PUBLIC_NOT_FOUND)

        link = await self.store.get_link(funnel_id, domain.id)
        if not link or not link.is_active:
            logger.debug(f"Public lookup miss: funnel {funnel_id} not linked to {hostname}")
            raise NotFoundError(PUBLIC_NOT_FOUND)

        funnel = await self.store.get_funnel(funnel_id)
        if not funnel or not funnel.is_live:
            logger.debug(f"Public lookup miss: funnel {funnel_id} is not live")
            raise NotFoundError(PUBLIC_NOT_FOUND)

        return funnel

    async def get_user_domains(self, owner_id: str) -> List[Domain]:
        """List an owner's domains, newest first, through the owner cache."""
        if self.cache is not None:
            try:
                cached = await self.cache.get(owner_id)
            except Exception as e:
                logger.warning(f"Cache read failed for owner {owner_id}: {e}")
                cached = None
            if cached is not None:
                return [Domain.from_dict(d) for d in cached]

        domains = await self.store.list_domains(owner_id)

        if self.cache is not None:
            try:
                await self.cache.set(owner_id, [d.to_dict() for d in domains])
            except Exception as e:
                logger.warning(f"Cache write failed for owner {owner_id}: {e}")

        return domains

    async def get_domain(self, domain_id: int, owner_id: str) -> Domain:
        return await self._get_owned_domain(domain_id, owner_id)

    async def get_domain_connections(
        self, domain_id: int, owner_id: str
    ) -> List[FunnelDomain]:
        await self._get_owned_domain(domain_id, owner_id)
        return await self.store.list_links(domain_id)

    async def get_verification_instructions(self, domain_id: int, owner_id: str) -> dict:
        """Return the DNS records the customer must create for a domain."""
        domain = await self._get_owned_domain(domain_id, owner_id)

        if domain.type == DomainType.SUBDOMAIN:
            return {
                "hostname": domain.hostname,
                "ownership_verification": None,
                "dns_instructions": None,
                "ssl_validation_records": None,
                "instructions": "This subdomain is automatically configured. No DNS setup required!",
            }

        return {
            "hostname": domain.hostname,
            "ownership_verification": domain.ownership_verification,
            "dns_instructions": domain.dns_instructions,
            "ssl_validation_records": domain.ssl_validation_records,
            "instructions": (
                "Add these DNS records at your domain registrar. DNS changes can "
                "take up to 48 hours to propagate, but usually complete within "
                "5-10 minutes."
            ),
        }
