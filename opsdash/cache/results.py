"""Time-bounded cache of query result pages."""

import logging
import time
from collections.abc import Callable
from pathlib import Path

from opsdash.cache.base import BaseCacheManager
from opsdash.core.constants import CacheConstants
from opsdash.exceptions import CacheError
from opsdash.models.cache import CacheEntry, CacheStatusInfo
from opsdash.models.page import Page

logger = logging.getLogger(__name__)


class ResultCache(BaseCacheManager[Page]):
    """Shared key -> Page store with a TTL.

    A lookup is a hit only while ``clock() - stored_at < ttl``. Expired entries
    are reported absent and evicted lazily. Each write replaces the whole entry,
    and diskcache commits every write atomically, so readers never see a
    partially overwritten page.

    ``get`` and ``set`` are synchronous SQLite calls. The request coordinator
    makes them directly on the event loop, so each one blocks the loop briefly
    (one indexed row read or write).
    """

    def __init__(
        self,
        ttl_seconds: float = float(CacheConstants.DEFAULT_TTL_SECONDS),
        directory: Path | str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the result cache.

        Args:
            ttl_seconds: Entry lifetime in seconds
            directory: Cache directory; temporary when None
            clock: Source of the current epoch time in seconds
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        super().__init__(directory, cache_subdir="results" if directory else None)
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def get(self, key: str) -> Page | None:
        """Return the cached page for ``key`` if it is still fresh."""
        entry = self.cache.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return None
        if not isinstance(entry, CacheEntry):
            raise CacheError(f"Unexpected value cached under {key}: {type(entry).__name__}")

        age = self.clock() - entry.stored_at
        if age >= self.ttl_seconds:
            logger.debug(f"Cache entry expired after {age:.1f}s: {key}")
            self.cache.delete(key)
            return None

        logger.debug(f"Cache hit: {key}")
        return entry.value

    def set(self, key: str, value: Page, namespace: str | None = None) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        entry = CacheEntry(key=key, value=value, stored_at=self.clock(), namespace=namespace)
        # diskcache's own expiry uses wall time; it only culls rows we would reject anyway
        self.cache.set(key, entry, expire=self.ttl_seconds, tag=namespace)
        logger.debug(f"Cached page {value.page} ({len(value.items)} items) with key: {key}")

    def save(self, key: str, data: Page) -> None:
        self.set(key, data)

    def load(self, key: str) -> Page | None:
        return self.get(key)

    def invalidate(self, key: str) -> int:
        """Drop a single entry.

        Returns:
            Number of removed entries (0 or 1)
        """
        return 1 if self.delete_item(key) else 0

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        removed = 0
        for key in list(self.cache.iterkeys()):
            if isinstance(key, str) and key.startswith(prefix) and self.cache.delete(key):
                removed += 1
        logger.debug(f"Invalidated {removed} cache entries with prefix {prefix!r}")
        return removed

    def invalidate_namespace(self, namespace: str) -> int:
        """Drop every entry written for ``namespace`` (an entity type)."""
        removed = self.cache.evict(namespace)
        logger.debug(f"Invalidated {removed} cache entries in namespace {namespace!r}")
        return removed

    def clear(self) -> int:
        return self.clear_cache()

    def status(self) -> CacheStatusInfo:
        """Summarize the cache contents per namespace."""
        namespaces: dict[str, int] = {}
        for key in self.cache.iterkeys():
            namespace = key.split(":", 1)[0] if isinstance(key, str) else "?"
            namespaces[namespace] = namespaces.get(namespace, 0) + 1
        return CacheStatusInfo(entries=len(self.cache), ttl_seconds=self.ttl_seconds, namespaces=namespaces)
