"""Freshness marker model."""

from datetime import datetime

from pydantic import BaseModel


class FreshnessMarker(BaseModel):
    """When a viewer last looked at a dashboard section."""

    section_key: str
    viewer_id: str
    last_seen_at: datetime
