"""Paginated result model."""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from opsdash.core.constants import PaginationConstants

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of query results.

    ``total_pages`` is derived from ``total_count`` and ``page_size`` and is
    never stored separately, so it cannot drift from them.
    """

    model_config = ConfigDict(frozen=True)

    items: list[T] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)
    page: int = Field(default=int(PaginationConstants.DEFAULT_PAGE), ge=1)
    page_size: int = Field(default=int(PaginationConstants.DEFAULT_PAGE_SIZE), gt=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        """Number of pages needed for ``total_count`` rows."""
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @classmethod
    def empty(cls, page_size: int = int(PaginationConstants.DEFAULT_PAGE_SIZE)) -> "Page[T]":
        """Placeholder page shown before the first load."""
        return cls(items=[], total_count=0, page=1, page_size=page_size)
