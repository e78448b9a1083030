"""
Persistence for domains, funnel links and funnel records.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

import redis.asyncio as redis

from .models import Domain, Funnel, FunnelDomain

logger = logging.getLogger("funnel_domains.domains.store")


class DuplicateKeyError(Exception):
    """Raised when a write would break a uniqueness constraint."""

    def __init__(self, key: str):
        super().__init__(f"Duplicate key: {key}")
        self.key = key


class DomainStore:
    """
    Store for Domain and FunnelDomain records.

    Uses Redis for persistence with in-memory fallback. Hostnames and
    (funnel, domain) pairs are claimed atomically with SET NX, which is
    the final authority on uniqueness.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        key_prefix: str = "funnel_domains:",
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._redis: Optional[redis.Redis] = None
        self._use_redis = True
        # In-memory fallback
        self._domains: Dict[int, dict] = {}
        self._hostnames: Dict[str, int] = {}
        self._links: Dict[Tuple[int, int], dict] = {}
        self._funnels: Dict[int, dict] = {}
        self._next_id = 0

    async def _get_redis(self) -> Optional[redis.Redis]:
        """Get Redis connection."""
        if not self._use_redis:
            return None

        if self._redis is None:
            try:
                self._redis = await redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
                logger.info("Domain store connected to Redis")
            except Exception as e:
                logger.warning(
                    f"Redis unavailable for domain store, using in-memory: {e}"
                )
                self._redis = None
                self._use_redis = False
                return None

        return self._redis

    # ── Keys ─────────────────────────────────────────────────────────

    def _domain_key(self, domain_id: int) -> str:
        return f"{self.key_prefix}domain:{domain_id}"

    def _hostname_key(self, hostname: str) -> str:
        return f"{self.key_prefix}hostname:{hostname}"

    def _owner_key(self, owner_id: str) -> str:
        return f"{self.key_prefix}owner:{owner_id}:domains"

    def _link_key(self, funnel_id: int, domain_id: int) -> str:
        return f"{self.key_prefix}link:{domain_id}:{funnel_id}"

    def _domain_links_key(self, domain_id: int) -> str:
        return f"{self.key_prefix}domain:{domain_id}:funnels"

    def _funnel_key(self, funnel_id: int) -> str:
        return f"{self.key_prefix}funnel:{funnel_id}"

    def _sequence_key(self) -> str:
        return f"{self.key_prefix}domain_seq"

    # ── Domains ──────────────────────────────────────────────────────

    async def create_domain(self, domain: Domain) -> Domain:
        """
        Insert a new domain and assign its id.

        Raises DuplicateKeyError if the hostname is already claimed.
        """
        domain.hostname = domain.hostname.lower()
        r = await self._get_redis()

        if r:
            domain_id = await r.incr(self._sequence_key())
            claimed = await r.set(
                self._hostname_key(domain.hostname), domain_id, nx=True
            )
            if not claimed:
                raise DuplicateKeyError(domain.hostname)
            domain.id = int(domain_id)
            try:
                async with r.pipeline(transaction=True) as pipe:
                    pipe.set(self._domain_key(domain.id), json.dumps(domain.to_dict()))
                    pipe.sadd(self._owner_key(domain.owner_id), domain.id)
                    await pipe.execute()
            except Exception as e:
                # Release the hostname claim
                logger.error(f"Failed to store domain {domain.hostname}: {e}")
                await r.delete(self._hostname_key(domain.hostname))
                domain.id = None
                raise
        else:
            if domain.hostname in self._hostnames:
                raise DuplicateKeyError(domain.hostname)
            self._next_id += 1
            domain.id = self._next_id
            self._hostnames[domain.hostname] = domain.id
            self._domains[domain.id] = domain.to_dict()

        logger.info(f"Stored domain {domain.id}: {domain.hostname}")
        return domain

    async def get_domain(
        self, domain_id: int, owner_id: Optional[str] = None
    ) -> Optional[Domain]:
        """Get a domain by id, optionally scoped to its owner."""
        r = await self._get_redis()

        if r:
            data = await r.get(self._domain_key(domain_id))
            if not data:
                return None
            info = json.loads(data)
        else:
            info = self._domains.get(domain_id)
            if not info:
                return None

        domain = Domain.from_dict(info)
        if owner_id is not None and domain.owner_id != owner_id:
            return None
        return domain

    async def get_domain_by_hostname(self, hostname: str) -> Optional[Domain]:
        """Get a domain by its hostname."""
        hostname = hostname.lower()
        r = await self._get_redis()

        if r:
            domain_id = await r.get(self._hostname_key(hostname))
        else:
            domain_id = self._hostnames.get(hostname)

        if domain_id is None:
            return None
        return await self.get_domain(int(domain_id))

    async def list_domains(self, owner_id: str) -> List[Domain]:
        """List an owner's domains, newest first."""
        r = await self._get_redis()
        domains: List[Domain] = []

        if r:
            for domain_id in await r.smembers(self._owner_key(owner_id)):
                domain = await self.get_domain(int(domain_id))
                if domain:
                    domains.append(domain)
        else:
            for info in self._domains.values():
                if info["owner_id"] == owner_id:
                    domains.append(Domain.from_dict(info))

        domains.sort(key=lambda d: (d.created_at, d.id or 0), reverse=True)
        return domains

    async def update_domain(self, domain: Domain) -> Domain:
        """Persist changes to an existing domain."""
        domain.updated_at = datetime.now(timezone.utc)
        data = domain.to_dict()

        r = await self._get_redis()
        if r:
            await r.set(self._domain_key(domain.id), json.dumps(data))
        else:
            self._domains[domain.id] = data

        logger.info(f"Updated domain {domain.id}: {domain.hostname}")
        return domain

    async def delete_domain(self, domain_id: int) -> bool:
        """Delete a domain and cascade its funnel links."""
        domain = await self.get_domain(domain_id)
        if not domain:
            return False

        r = await self._get_redis()
        if r:
            funnel_ids = await r.smembers(self._domain_links_key(domain_id))
            async with r.pipeline(transaction=True) as pipe:
                pipe.delete(self._domain_key(domain_id))
                pipe.delete(self._hostname_key(domain.hostname))
                pipe.srem(self._owner_key(domain.owner_id), domain_id)
                for funnel_id in funnel_ids:
                    pipe.delete(self._link_key(int(funnel_id), domain_id))
                pipe.delete(self._domain_links_key(domain_id))
                await pipe.execute()
        else:
            self._domains.pop(domain_id, None)
            self._hostnames.pop(domain.hostname, None)
            for key in [k for k in self._links if k[1] == domain_id]:
                del self._links[key]

        logger.info(f"Deleted domain {domain_id}: {domain.hostname}")
        return True

    # ── Funnel links ─────────────────────────────────────────────────

    async def create_link(self, link: FunnelDomain) -> FunnelDomain:
        """
        Insert a funnel-domain link.

        Raises DuplicateKeyError if the pair already exists.
        """
        key = self._link_key(link.funnel_id, link.domain_id)
        r = await self._get_redis()

        if r:
            claimed = await r.set(key, json.dumps(link.to_dict()), nx=True)
            if not claimed:
                raise DuplicateKeyError(key)
            try:
                await r.sadd(self._domain_links_key(link.domain_id), link.funnel_id)
            except Exception as e:
                logger.error(
                    f"Failed to index link {link.funnel_id}->{link.domain_id}: {e}"
                )
                await r.delete(key)
                raise
        else:
            pair = (link.funnel_id, link.domain_id)
            if pair in self._links:
                raise DuplicateKeyError(key)
            self._links[pair] = link.to_dict()

        logger.info(f"Linked funnel {link.funnel_id} to domain {link.domain_id}")
        return link

    async def get_link(
        self, funnel_id: int, domain_id: int
    ) -> Optional[FunnelDomain]:
        r = await self._get_redis()

        if r:
            data = await r.get(self._link_key(funnel_id, domain_id))
            if not data:
                return None
            info = json.loads(data)
        else:
            info = self._links.get((funnel_id, domain_id))
            if not info:
                return None

        return FunnelDomain.from_dict(info)

    async def list_links(self, domain_id: int) -> List[FunnelDomain]:
        """List all funnel links for a domain."""
        r = await self._get_redis()
        links: List[FunnelDomain] = []

        if r:
            funnel_ids: Set[str] = await r.smembers(
                self._domain_links_key(domain_id)
            )
            for funnel_id in funnel_ids:
                link = await self.get_link(int(funnel_id), domain_id)
                if link:
                    links.append(link)
        else:
            links = [
                FunnelDomain.from_dict(info)
                for (_, d_id), info in self._links.items()
                if d_id == domain_id
            ]

        links.sort(key=lambda link: link.funnel_id)
        return links

    async def delete_links(self, funnel_id: int, domain_id: int) -> int:
        """Delete links matching exactly this pair; returns rows removed."""
        r = await self._get_redis()

        if r:
            async with r.pipeline(transaction=True) as pipe:
                pipe.delete(self._link_key(funnel_id, domain_id))
                pipe.srem(self._domain_links_key(domain_id), funnel_id)
                deleted, _ = await pipe.execute()
            removed = int(deleted)
        else:
            removed = 1 if self._links.pop((funnel_id, domain_id), None) else 0

        if removed:
            logger.info(f"Unlinked funnel {funnel_id} from domain {domain_id}")
        return removed

    # ── Funnels ──────────────────────────────────────────────────────

    async def save_funnel(self, funnel: Funnel) -> Funnel:
        """Upsert the funnel record the domain engine reads."""
        data = funnel.to_dict()
        r = await self._get_redis()
        if r:
            await r.set(self._funnel_key(funnel.id), json.dumps(data))
        else:
            self._funnels[funnel.id] = data
        return funnel

    async def get_funnel(
        self, funnel_id: int, owner_id: Optional[str] = None
    ) -> Optional[Funnel]:
        """Get a funnel by id, optionally scoped to its owner."""
        r = await self._get_redis()

        if r:
            data = await r.get(self._funnel_key(funnel_id))
            if not data:
                return None
            info = json.loads(data)
        else:
            info = self._funnels.get(funnel_id)
            if not info:
                return None

        funnel = Funnel.from_dict(info)
        if owner_id is not None and funnel.owner_id != owner_id:
            return None
        return funnel

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Domain store Redis connection closed")
