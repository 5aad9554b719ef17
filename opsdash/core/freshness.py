"""Badge counts of records created since a section was last viewed."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta

from opsdash.cache.markers import MarkerStore
from opsdash.core.constants import FreshnessConstants
from opsdash.models.freshness import FreshnessMarker

logger = logging.getLogger(__name__)

# (section_key, since) -> number of records created strictly after ``since``
CreatedSinceCounter = Callable[[str, datetime], Awaitable[int]]


def utcnow() -> datetime:
    return datetime.now(UTC)


class FreshnessTracker:
    """Computes "new since last visit" badges for one viewer.

    Counts always come from the store; only the last-seen markers are kept,
    and ``mark_seen`` is the only thing that writes them.
    """

    def __init__(
        self,
        counter: CreatedSinceCounter,
        markers: MarkerStore,
        viewer_id: str,
        window_hours: float = float(FreshnessConstants.DEFAULT_WINDOW_HOURS),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the tracker.

        Args:
            counter: Counts records of a section created after a timestamp
            markers: Persistent marker storage
            viewer_id: Whose markers to read and write
            window_hours: Look-back window for sections never marked seen
            clock: Source of the current time (timezone aware)
        """
        self.counter = counter
        self.markers = markers
        self.viewer_id = viewer_id
        self.window = timedelta(hours=window_hours)
        self.clock = clock

    def last_seen(self, section_key: str) -> datetime:
        """When the viewer last marked the section seen, or the default window start."""
        marker = self.markers.get_marker(self.viewer_id, section_key)
        if marker is None:
            return self.clock() - self.window
        return marker.last_seen_at

    async def badge_count(self, section_key: str) -> int:
        """Number of records in the section created after the last-seen marker."""
        since = self.last_seen(section_key)
        count = await self.counter(section_key, since)
        logger.debug(f"{count} new records in {section_key} since {since.isoformat()}")
        return count

    async def badge_counts(self, section_keys: Sequence[str]) -> dict[str, int]:
        """Badge counts for several sections, fetched concurrently."""
        counts = await asyncio.gather(*(self.badge_count(key) for key in section_keys))
        return dict(zip(section_keys, counts, strict=True))

    def mark_seen(self, section_key: str) -> FreshnessMarker:
        """Record that the viewer has seen everything in the section up to now."""
        marker = FreshnessMarker(section_key=section_key, viewer_id=self.viewer_id, last_seen_at=self.clock())
        self.markers.put_marker(marker)
        return marker
