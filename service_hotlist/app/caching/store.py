"""
TTL cache store shared by every source adapter and helper service.

Two interchangeable backends are provided: an in-process dictionary and a
Redis-backed store. Entries are replaced wholesale, never mutated, and an
entry is only visible while ``now < stored_at + ttl_seconds``.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis

from shared.errors import CacheUnavailable, InvalidTTL
from shared.logging import get_logger


Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """A stored payload with its write time and lifetime."""

    key: str
    payload: Any
    stored_at: float
    ttl_seconds: int

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payload": self.payload,
            "stored_at": self.stored_at,
            "ttl_seconds": self.ttl_seconds,
        }

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            key=key,
            payload=data["payload"],
            stored_at=float(data["stored_at"]),
            ttl_seconds=int(data["ttl_seconds"]),
        )


def validate_ttl(ttl_seconds: Any) -> int:
    """Reject non-positive or non-integral TTLs."""
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0:
        raise InvalidTTL(ttl_seconds)
    return ttl_seconds


class CacheStore:
    """Key/value store with per-entry expiry."""

    backend = "abstract"

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or time.time

    async def get(self, key: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    async def set(self, key: str, value: Any, ttl_seconds: int, *, stored_at: Optional[float] = None) -> CacheEntry:
        raise NotImplementedError

    async def delete(self, key: str) -> bool:
        raise NotImplementedError

    async def sweep(self) -> int:
        """Drop expired entries. Backends with native expiry return 0."""
        return 0

    async def ping(self) -> bool:
        return True

    async def stats(self) -> Dict[str, Any]:
        return {"backend": self.backend}

    async def close(self) -> None:
        return None


class MemoryCacheStore(CacheStore):
    """In-process cache store with lazy expiry and an explicit sweep."""

    backend = "memory"

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._entries: Dict[str, CacheEntry] = {}
        self.logger = get_logger("hotlist.cache.memory")

    async def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            # Only evict the entry we looked at; a newer write may have replaced it.
            if self._entries.get(key) is entry:
                del self._entries[key]
            return None
        return entry

    async def set(self, key: str, value: Any, ttl_seconds: int, *, stored_at: Optional[float] = None) -> CacheEntry:
        ttl = validate_ttl(ttl_seconds)
        if stored_at is None:
            stored_at = self.clock()
        entry = CacheEntry(key=key, payload=value, stored_at=stored_at, ttl_seconds=ttl)
        self._entries[key] = entry
        return entry

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def sweep(self) -> int:
        now = self.clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self.logger.debug("Swept expired cache entries", count=len(expired))
        return len(expired)

    async def stats(self) -> Dict[str, Any]:
        now = self.clock()
        live = sum(1 for entry in self._entries.values() if not entry.is_expired(now))
        return {
            "backend": self.backend,
            "entries": len(self._entries),
            "live_entries": live,
        }

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore(CacheStore):
    """Redis-backed cache store; Redis' own TTL reclaims expired keys."""

    backend = "redis"

    def __init__(self, redis_url: str, namespace: str = "hotlist", clock: Optional[Clock] = None):
        super().__init__(clock)
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("hotlist.cache.redis")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            client = await self._get_redis()
            raw = await client.get(self._make_key(key))
        except Exception as exc:
            raise CacheUnavailable("Redis read failed", {"key": key, "error": str(exc)}) from exc

        if raw is None:
            return None

        try:
            entry = CacheEntry.from_dict(key, json.loads(raw))
        except (TypeError, KeyError, ValueError):
            self.logger.warning("Discarding undecodable cache entry", key=key)
            return None

        # Redis expiry is second-granular; apply the exact check as well.
        if entry.is_expired(self.clock()):
            return None
        return entry

    async def set(self, key: str, value: Any, ttl_seconds: int, *, stored_at: Optional[float] = None) -> CacheEntry:
        ttl = validate_ttl(ttl_seconds)
        if stored_at is None:
            stored_at = self.clock()
        entry = CacheEntry(key=key, payload=value, stored_at=stored_at, ttl_seconds=ttl)
        try:
            payload = json.dumps(entry.to_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise CacheUnavailable("Payload is not JSON serializable", {"key": key, "error": str(exc)}) from exc

        try:
            client = await self._get_redis()
            await client.setex(self._make_key(key), ttl, payload)
        except Exception as exc:
            raise CacheUnavailable("Redis write failed", {"key": key, "error": str(exc)}) from exc

        self.logger.debug("Cached value", key=key, ttl=ttl)
        return entry

    async def delete(self, key: str) -> bool:
        try:
            client = await self._get_redis()
            return bool(await client.delete(self._make_key(key)))
        except Exception as exc:
            raise CacheUnavailable("Redis delete failed", {"key": key, "error": str(exc)}) from exc

    async def ping(self) -> bool:
        try:
            client = await self._get_redis()
            return bool(await client.ping())
        except Exception as exc:
            self.logger.warning("Redis ping failed", error=str(exc))
            return False

    async def stats(self) -> Dict[str, Any]:
        try:
            client = await self._get_redis()
            keys = 0
            async for _ in client.scan_iter(match=self._make_key("*")):
                keys += 1
        except Exception as exc:
            self.logger.error("Cache stats error", error=str(exc))
            return {"backend": self.backend, "error": str(exc)}

        return {
            "backend": self.backend,
            "entries": keys,
            "namespace": self.namespace,
        }

    async def close(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except Exception as exc:  # pragma: no cover - close is best effort
            self.logger.debug("Redis close failed", error=str(exc))
        finally:
            self._redis = None


def create_cache_store(backend: str, *, redis_url: str = "", namespace: str = "hotlist") -> CacheStore:
    """Build the configured cache store backend."""
    backend = backend.lower()
    if backend == "memory":
        return MemoryCacheStore()
    if backend == "redis":
        return RedisCacheStore(redis_url, namespace=namespace)
    raise ValueError(f"Unsupported cache backend: {backend}")
