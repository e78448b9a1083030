"""
Per-owner cache of domain listings.
"""

import json
import logging
import time
from typing import Dict, List, Optional

import redis.asyncio as redis

logger = logging.getLogger("funnel_domains.domains.cache")


class _CacheEntry:
    """TTL cache entry for owner listings."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: List[dict], ttl: float):
        self.value = value
        self.expires_at = time.monotonic() + ttl


class DomainCache:
    """
    Caches each owner's serialized domain list.

    Mutations call ``invalidate(owner_id)``; reads repopulate lazily.
    Uses Redis when reachable, otherwise an in-process TTL map.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        key_prefix: str = "funnel_domains:",
        ttl: int = 300,
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.ttl = ttl
        self._redis: Optional[redis.Redis] = None
        self._use_redis = True
        self._memory: Dict[str, _CacheEntry] = {}

    async def _get_redis(self) -> Optional[redis.Redis]:
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
                logger.info("Domain cache connected to Redis")
            except Exception as e:
                logger.warning(f"Redis unavailable for domain cache, using in-memory: {e}")
                self._redis = None
                self._use_redis = False
                return None

        return self._redis

    def _owner_key(self, owner_id: str) -> str:
        return f"{self.key_prefix}cache:owner:{owner_id}:domains"

    async def get(self, owner_id: str) -> Optional[List[dict]]:
        r = await self._get_redis()
        if r:
            data = await r.get(self._owner_key(owner_id))
            return json.loads(data) if data else None

        entry = self._memory.get(owner_id)
        if entry and time.monotonic() < entry.expires_at:
            return entry.value
        self._memory.pop(owner_id, None)
        return None

    async def set(self, owner_id: str, domains: List[dict]) -> None:
        r = await self._get_redis()
        if r:
            await r.set(self._owner_key(owner_id), json.dumps(domains), ex=self.ttl)
        else:
            self._memory[owner_id] = _CacheEntry(domains, self.ttl)

    async def invalidate(self, owner_id: str) -> None:
        """Drop everything cached for an owner."""
        r = await self._get_redis()
        if r:
            await r.delete(self._owner_key(owner_id))
        else:
            self._memory.pop(owner_id, None)
        logger.debug(f"Invalidated domain cache for owner {owner_id}")

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None
