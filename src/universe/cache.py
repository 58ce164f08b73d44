"""Single-flight TTL cache for package metadata fetches.

Concurrent lookups of the same key share one fetch: the first caller runs
the fetch, later callers block on its result. Entries never expire when no
TTL is given, which keeps a resolution session frozen until an explicit
invalidation.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with optional TTL."""

    value: T
    expires_at: Optional[float] = None
    created_at: float = field(default_factory=time.time)

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        return self.expires_at is not None and time.time() > self.expires_at


class SingleFlightCache(Generic[T]):
    """Keyed cache guaranteeing at most one in-flight fetch per key."""

    def __init__(self, default_ttl: Optional[float] = None):
        """Initialize the cache.

        Args:
            default_ttl: Time-to-live in seconds; None keeps entries until invalidated.
        """
        self._default_ttl = default_ttl
        self._cache: Dict[str, CacheEntry[T]] = {}
        self._inflight: Dict[str, "Future[T]"] = {}
        self._lock = threading.Lock()
        self._fetches = 0
        self._hits = 0

    def get(self, key: str) -> Optional[T]:
        """Return a cached value without fetching, or None."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None or entry.is_expired():
                return None
            return entry.value

    def get_or_fetch(self, key: str, fetch: Callable[[], T]) -> T:
        """Return the cached value for ``key``, running ``fetch`` at most once concurrently.

        Exceptions raised by ``fetch`` propagate to every waiting caller and
        nothing is cached.
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and not entry.is_expired():
                self._hits += 1
                return entry.value
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
                self._fetches += 1

        if not owner:
            if is_debug_enabled(logger):
                logger.debug(
                    "Joining in-flight fetch",
                    extra=extra_context(event="cache_wait", component="single_flight", target=key),
                )
            return future.result()

        try:
            value = fetch()
        except BaseException as exc:
            with self._lock:
                self._inflight.pop(key, None)
            future.set_exception(exc)
            raise

        expires_at = time.time() + self._default_ttl if self._default_ttl is not None else None
        with self._lock:
            self._cache[key] = CacheEntry(value=value, expires_at=expires_at)
            self._inflight.pop(key, None)
        future.set_result(value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        with self._lock:
            if key is None:
                self._cache.clear()
            else:
                self._cache.pop(key, None)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "total_entries": len(self._cache),
                "inflight": len(self._inflight),
                "fetches": self._fetches,
                "hits": self._hits,
                "default_ttl": self._default_ttl,
            }
