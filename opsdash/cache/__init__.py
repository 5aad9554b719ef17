"""Cache module for opsdash."""

from opsdash.cache.base import BaseCacheManager
from opsdash.cache.markers import MarkerStore
from opsdash.cache.results import ResultCache

__all__ = [
    "BaseCacheManager",
    "MarkerStore",
    "ResultCache",
]
