"""Cache-related data models."""

from pydantic import BaseModel, ConfigDict, Field

from opsdash.models.page import Page


class CacheEntry(BaseModel):
    """A cached page of query results.

    Entries are never mutated; a refresh stores a new entry under the same key.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    value: Page
    stored_at: float
    namespace: str | None = None


class CacheStatusInfo(BaseModel):
    """Model for result cache status information."""

    entries: int = 0
    ttl_seconds: float
    namespaces: dict[str, int] = Field(default_factory=dict)
