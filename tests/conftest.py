"""Shared fixtures: an in-memory store, a fake clock and cache instances."""

import itertools
from collections import defaultdict
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

from opsdash.cache.markers import MarkerStore
from opsdash.cache.results import ResultCache
from opsdash.core.constants import SortDirection
from opsdash.core.coordinator import RequestCoordinator
from opsdash.exceptions import NotFoundError, TransportError
from opsdash.models.page import Page
from opsdash.models.query import QueryParams, RangeFilter


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for column, expected in filters.items():
        value = row.get(column)
        if isinstance(expected, RangeFilter):
            if expected.min is not None and (value is None or value < expected.min):
                return False
            if expected.max is not None and (value is None or value > expected.max):
                return False
        elif isinstance(expected, frozenset | set):
            if str(value) not in expected:
                return False
        elif value != expected:
            return False
    return True


class FakeStore:
    """In-memory stand-in for StoreClient's async interface."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.calls: list[tuple[str, str]] = []
        self.fail_inserts: set[str] = set()
        self._ids = itertools.count(1)

    def add(self, table: str, **row: Any) -> dict[str, Any]:
        row.setdefault("id", f"{table}-{next(self._ids)}")
        row.setdefault("created_at", datetime(2025, 9, 1, tzinfo=UTC))
        self.tables[str(table)].append(row)
        return row

    def calls_to(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _find(self, table: str, record_id: str) -> dict[str, Any]:
        for row in self.tables[table]:
            if row["id"] == record_id:
                return row
        raise NotFoundError(f"{table} record '{record_id}' not found")

    async def fetch_page(self, table: str, params: QueryParams, search_fields: Any = ()) -> Page:
        table = str(table)
        self.calls.append(("fetch_page", table))
        rows = [row for row in self.tables[table] if _matches(row, params.filters)]
        if params.search_text:
            needle = params.search_text.lower()
            rows = [row for row in rows if any(needle in str(row.get(f) or "").lower() for f in search_fields)]
        rows.sort(key=lambda row: row[params.sort_field], reverse=params.sort_direction == SortDirection.DESC)
        items = rows[params.offset : params.offset + params.page_size]
        return Page(
            items=[dict(row) for row in items], total_count=len(rows), page=params.page, page_size=params.page_size
        )

    async def select(self, table: str, filters: Mapping[str, Any], order: Any = None) -> list[dict[str, Any]]:
        table = str(table)
        self.calls.append(("select", table))
        rows = [dict(row) for row in self.tables[table] if _matches(row, filters)]
        if order:
            field, direction = order
            rows.sort(key=lambda row: row[field], reverse=direction == SortDirection.DESC)
        return rows

    async def get(self, table: str, record_id: str) -> dict[str, Any]:
        self.calls.append(("get", str(table)))
        return dict(self._find(str(table), record_id))

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        table = str(table)
        self.calls.append(("insert", table))
        if table in self.fail_inserts:
            raise TransportError(f"insert into {table} failed")
        return dict(self.add(table, **dict(row)))

    async def update(self, table: str, record_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        table = str(table)
        self.calls.append(("update", table))
        row = self._find(table, record_id)
        row.update(changes)
        return dict(row)

    async def delete(self, table: str, record_id: str) -> None:
        table = str(table)
        self.calls.append(("delete", table))
        self.tables[table].remove(self._find(table, record_id))

    async def count_created_since(self, table: str, since: datetime) -> int:
        self.calls.append(("count_created_since", str(table)))
        return sum(1 for row in self.tables[str(table)] if row["created_at"] > since)

    def open(self) -> "FakeStore":
        return self

    def close(self) -> None:
        pass


def order_row(order_id: str, customer_id: str = "cust-1", amount: str = "10.00", **fields: Any) -> dict[str, Any]:
    """Row for the ``orders`` table with sensible defaults."""
    row: dict[str, Any] = {
        "id": order_id,
        "order_number": f"ORD-{order_id}",
        "customer_id": customer_id,
        "status": "new",
        "assigned_sales_rep_id": None,
        "assigned_designer_id": None,
        "assigned_role": None,
        "total_amount": Decimal(amount),
        "payment_status": "unpaid",
        "created_at": datetime(2025, 9, 10, tzinfo=UTC),
    }
    row.update(fields)
    return row


@pytest.fixture
def clock():
    """Fake epoch clock."""
    return FakeClock()


@pytest.fixture
def store():
    """Empty in-memory store."""
    return FakeStore()


@pytest.fixture
def result_cache(tmp_path, clock):
    """Result cache in a temporary directory with a fake clock."""
    cache = ResultCache(ttl_seconds=300, directory=tmp_path, clock=clock)
    yield cache
    cache.close()


@pytest.fixture
def marker_store(tmp_path):
    """Marker store in a temporary directory."""
    markers = MarkerStore(tmp_path / "markers")
    yield markers
    markers.close()


@pytest.fixture
def coordinator(result_cache):
    """Coordinator without retry delays."""
    return RequestCoordinator(result_cache, max_retries=3, base_delay=0)


@pytest.fixture
def make_order_row():
    """Factory for ``orders`` rows."""
    return order_row
