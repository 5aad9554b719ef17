"""Core functionality module."""

from opsdash.core.constants import EntityType, SortDirection

__all__ = [
    "EntityType",
    "SortDirection",
]
