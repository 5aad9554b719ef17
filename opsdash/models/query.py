"""Query parameter models and their canonical cache keys."""

import json
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from opsdash.core.constants import DEFAULT_SORT_FIELD, PaginationConstants, SortDirection

RangeBound = Decimal | int | float | datetime | date


class RangeFilter(BaseModel):
    """Inclusive range filter; either bound may be omitted."""

    model_config = ConfigDict(frozen=True)

    min: RangeBound | None = None
    max: RangeBound | None = None

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.max is None


FilterValue = RangeFilter | frozenset[str] | bool | int | float | Decimal | str

# Fields whose change sends the user back to the first page
PAGE_RESETTING_FIELDS = frozenset({"search_text", "filters"})


def is_empty_filter(value: Any) -> bool:
    """Check whether a filter value carries no constraint."""
    if value is None:
        return True
    if isinstance(value, RangeFilter):
        return value.is_empty
    if isinstance(value, Mapping):
        return all(bound is None for bound in value.values())
    if isinstance(value, str | frozenset | set | list | tuple):
        return len(value) == 0
    return False


def _json_scalar(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def canonical_filter(value: FilterValue) -> Any:
    """Encode a filter value as order-independent JSON data."""
    if isinstance(value, RangeFilter):
        bounds = {"min": value.min, "max": value.max}
        return {"range": {k: _json_scalar(v) for k, v in bounds.items() if v is not None}}
    if isinstance(value, frozenset):
        return {"in": sorted(value)}
    return _json_scalar(value)


class QueryParams(BaseModel):
    """Immutable query description for one page of results.

    Equality is structural; empty filters are dropped on construction so they
    never influence equality or the cache key.
    """

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=int(PaginationConstants.DEFAULT_PAGE), ge=1)
    page_size: int = Field(
        default=int(PaginationConstants.DEFAULT_PAGE_SIZE), gt=0, le=int(PaginationConstants.MAX_PAGE_SIZE)
    )
    search_text: str = ""
    sort_field: str = DEFAULT_SORT_FIELD
    sort_direction: SortDirection = SortDirection.DESC
    filters: dict[str, FilterValue] = Field(default_factory=dict)

    @field_validator("filters", mode="before")
    @classmethod
    def drop_empty_filters(cls, v: Any) -> Any:
        """Remove absent or empty filters before validation."""
        if v is None:
            return {}
        if isinstance(v, Mapping):
            return {key: value for key, value in v.items() if not is_empty_filter(value)}
        return v

    @property
    def offset(self) -> int:
        """Zero-based index of the first row on this page."""
        return (self.page - 1) * self.page_size

    def canonical_key(self, namespace: str) -> str:
        """Build the normalized cache key for these params under a namespace."""
        payload = {
            "page": self.page,
            "page_size": self.page_size,
            "search": self.search_text,
            "sort": [self.sort_field, self.sort_direction.value],
            "filters": {key: canonical_filter(value) for key, value in self.filters.items()},
        }
        return f"{namespace}:{json.dumps(payload, sort_keys=True, separators=(',', ':'))}"

    def merge(self, patch: Mapping[str, Any]) -> "QueryParams":
        """Apply a partial update, last writer wins.

        Filters merge per key and an empty value removes the key. A change to
        the search text or to any filter always resets the page to 1.
        """
        unknown = set(patch) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown query fields: {', '.join(sorted(unknown))}")

        data = {field: getattr(self, field) for field in type(self).model_fields}
        filters = dict(self.filters)
        for field, value in patch.items():
            if field != "filters":
                data[field] = value
                continue
            for key, filter_value in (value or {}).items():
                if is_empty_filter(filter_value):
                    filters.pop(key, None)
                else:
                    filters[key] = filter_value
        data["filters"] = filters

        if PAGE_RESETTING_FIELDS & set(patch):
            data["page"] = int(PaginationConstants.DEFAULT_PAGE)

        return type(self).model_validate(data)
