"""
Cache-read, single-flight and cache-write around upstream producers.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple

from shared.errors import CacheUnavailable, HotlistError, UpstreamFailure, UpstreamTimeout
from shared.logging import get_logger

from ..caching.store import CacheEntry, CacheStore, validate_ttl
from .singleflight import SingleFlight

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.upstream_client import UpstreamClient


Producer = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class FetchResult:
    """Raw upstream payload plus when it was fetched and whether it came from cache."""

    data: Any
    update_time: float
    from_cache: bool

    @property
    def updated_at(self) -> datetime:
        return datetime.fromtimestamp(self.update_time, tz=timezone.utc)


def source_of(key: str) -> str:
    """First segment of a ``<source>:<discriminant>`` cache key."""
    return key.split(":", 1)[0]


class FetchLayer:
    """Serve upstream payloads from cache, collapsing concurrent misses per key."""

    def __init__(
        self,
        store: CacheStore,
        *,
        upstream: Optional["UpstreamClient"] = None,
        default_ttl: int = 3600,
        default_timeout: float = 6.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.upstream = upstream
        self.default_ttl = validate_ttl(default_ttl)
        self.default_timeout = default_timeout
        self.metrics = metrics
        self.logger = get_logger("hotlist.fetch_layer")
        self._flights = SingleFlight()

    async def fetch(
        self,
        key: str,
        ttl_seconds: Optional[int],
        no_cache: bool,
        producer: Producer,
        *,
        timeout: Optional[float] = None,
    ) -> FetchResult:
        """Return the payload for ``key``, calling ``producer`` at most once concurrently."""
        ttl = validate_ttl(self.default_ttl if ttl_seconds is None else ttl_seconds)
        source = source_of(key)

        if not no_cache:
            entry = await self._safe_get(key)
            if entry is not None:
                self._count("cache_hits_total", source=source)
                self.logger.debug("Cache hit", key=key)
                return FetchResult(data=entry.payload, update_time=entry.stored_at, from_cache=True)
            self._count("cache_misses_total", source=source)

        call_timeout = self.default_timeout if timeout is None else timeout

        async def _flight() -> FetchResult:
            # A flight that settled while our read was pending has already filled the cache.
            if not no_cache:
                entry = await self._safe_get(key)
                if entry is not None:
                    self.logger.debug("Cache filled by an earlier flight", key=key)
                    return FetchResult(data=entry.payload, update_time=entry.stored_at, from_cache=True)
            data, update_time = await self._call_producer(key, source, ttl, producer, call_timeout)
            return FetchResult(data=data, update_time=update_time, from_cache=False)

        result, shared = await self._flights.do(key, _flight)
        if shared:
            self._count("singleflight_joins_total", source=source)
            self.logger.debug("Joined in-flight upstream call", key=key)
        self._set_inflight_gauge()
        return result

    async def get(
        self,
        key: str,
        url: str,
        *,
        ttl: Optional[int] = None,
        no_cache: bool = False,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResult:
        """Fetch ``url`` through the upstream client, cached under ``key``."""
        if self.upstream is None:
            raise RuntimeError("FetchLayer.get requires an upstream client")

        source = source_of(key)
        upstream = self.upstream

        async def producer() -> Any:
            return await upstream.get(source, url, headers=headers, timeout=timeout)

        return await self.fetch(key, ttl, no_cache, producer, timeout=timeout)

    async def _call_producer(
        self,
        key: str,
        source: str,
        ttl: int,
        producer: Producer,
        timeout: float,
    ) -> Tuple[Any, float]:
        self._set_inflight_gauge()
        self.logger.info("Fetching upstream", key=key, timeout=timeout)
        start = time.perf_counter()
        outcome = "success"
        try:
            data = await asyncio.wait_for(producer(), timeout)
        except asyncio.TimeoutError:
            outcome = "timeout"
            self.logger.warning("Upstream call timed out", key=key, timeout=timeout)
            raise UpstreamTimeout(source, timeout, {"key": key}) from None
        except HotlistError as exc:
            outcome = "error"
            self.logger.error("Upstream call failed", key=key, code=exc.code, error=exc.message)
            raise
        except Exception as exc:
            outcome = "error"
            self.logger.error("Upstream call failed", key=key, error=str(exc))
            raise UpstreamFailure(source, str(exc) or exc.__class__.__name__, {"key": key}) from exc
        finally:
            duration = time.perf_counter() - start
            self._count("upstream_requests_total", source=source, outcome=outcome)
            self._observe("upstream_request_duration_seconds", duration, source=source)

        completed_at = self.store.clock()
        await self._safe_set(key, data, ttl, completed_at)
        self.logger.info("Upstream fetch complete", key=key, duration_ms=round(duration * 1000, 2))
        return data, completed_at

    async def _safe_get(self, key: str) -> Optional[CacheEntry]:
        """Read from the store, treating storage failures as a miss."""
        try:
            return await self.store.get(key)
        except CacheUnavailable as exc:
            self.logger.warning("Cache read failed, treating as miss", key=key, error=exc.message)
            return None

    async def _safe_set(self, key: str, data: Any, ttl: int, stored_at: float) -> None:
        """Write to the store; a storage failure never fails the fetch."""
        try:
            await self.store.set(key, data, ttl, stored_at=stored_at)
        except CacheUnavailable as exc:
            self.logger.warning("Cache write failed, result not cached", key=key, error=exc.message)

    def inflight_count(self) -> int:
        return len(self._flights)

    def is_inflight(self, key: str) -> bool:
        return key in self._flights

    async def close(self) -> None:
        await self._flights.cancel_all()

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    def _observe(self, metric_name: str, value: float, **labels) -> None:
        if self.metrics:
            self.metrics.observe_histogram(metric_name, value, **labels)

    def _set_inflight_gauge(self) -> None:
        if self.metrics:
            self.metrics.set_gauge("inflight_requests", len(self._flights))
