"""Shared diskcache plumbing for the result cache and the marker store."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, TypeVar

from diskcache import Cache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseCacheManager(ABC, Generic[T]):
    """Abstract key/value store on top of a ``diskcache.Cache``."""

    def __init__(self, directory: Path | str | None = None, cache_subdir: str | None = None) -> None:
        """Open (or create) the backing cache.

        Args:
            directory: Cache directory; a private temporary directory when None
            cache_subdir: Optional subdirectory within ``directory``
        """
        cache_path: Path | None = None
        if directory is not None:
            cache_path = Path(directory) / cache_subdir if cache_subdir else Path(directory)
            cache_path.mkdir(parents=True, exist_ok=True)

        # diskcache picks a temporary directory when given None
        self.cache = Cache(str(cache_path) if cache_path else None)
        self.cache_path = Path(self.cache.directory)
        logger.debug(f"Opened {type(self).__name__} at {self.cache_path}")

    def __len__(self) -> int:
        return len(self.cache)

    def has_cache(self) -> bool:
        """True while at least one entry is stored."""
        return len(self.cache) > 0

    def exists(self, key: str) -> bool:
        return key in self.cache

    def delete_item(self, key: str) -> bool:
        """Remove one entry; False when the key was absent."""
        return bool(self.cache.delete(key))

    def clear_cache(self) -> int:
        """Remove every entry.

        Returns:
            Number of removed entries
        """
        removed = self.cache.clear()
        logger.info(f"Cleared {removed} entries from {self.cache_path}")
        return removed

    def close(self) -> None:
        self.cache.close()

    @abstractmethod
    def save(self, key: str, data: T) -> None:
        """Store ``data`` under ``key``."""

    @abstractmethod
    def load(self, key: str) -> T | None:
        """Return the value stored under ``key``, or None."""

    def __del__(self) -> None:
        if hasattr(self, "cache"):
            self.cache.close()
