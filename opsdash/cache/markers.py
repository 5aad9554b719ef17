"""Persistent last-seen markers for dashboard sections."""

import logging
from pathlib import Path

from opsdash.cache.base import BaseCacheManager
from opsdash.models.freshness import FreshnessMarker

logger = logging.getLogger(__name__)


class MarkerStore(BaseCacheManager[FreshnessMarker]):
    """Stores one freshness marker per (viewer, section)."""

    def __init__(self, directory: Path | str | None = None) -> None:
        """Initialize marker storage.

        Args:
            directory: Marker directory; temporary when None
        """
        super().__init__(directory)

    @staticmethod
    def _generate_cache_key(viewer_id: str, section_key: str) -> str:
        return f"{viewer_id}:{section_key}"

    def save(self, key: str, data: FreshnessMarker) -> None:
        self.cache.set(key, data.model_dump(mode="json"))

    def load(self, key: str) -> FreshnessMarker | None:
        data = self.cache.get(key)
        if data is None:
            return None
        return FreshnessMarker.model_validate(data)

    def get_marker(self, viewer_id: str, section_key: str) -> FreshnessMarker | None:
        """Load the marker for a viewer's section, if one was ever written."""
        return self.load(self._generate_cache_key(viewer_id, section_key))

    def put_marker(self, marker: FreshnessMarker) -> None:
        """Store a marker, replacing the previous one for the same section."""
        self.save(self._generate_cache_key(marker.viewer_id, marker.section_key), marker)
        logger.debug(f"Marked section {marker.section_key} seen for {marker.viewer_id} at {marker.last_seen_at}")
