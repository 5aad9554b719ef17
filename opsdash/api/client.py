"""Client for the remote store's PostgREST-style query API."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import requests
from pydantic import TypeAdapter

from opsdash.config import Config
from opsdash.core.constants import SortDirection
from opsdash.exceptions import (
    AuthenticationError,
    ConfigurationError,
    NotFoundError,
    PermissionError,
    StoreError,
    TransportError,
    ValidationError,
)
from opsdash.models.page import Page
from opsdash.models.query import FilterValue, QueryParams, RangeFilter

QueryString = list[tuple[str, str]]

_RESERVED_CHARS = set(',()"')
_JSON_ROW = TypeAdapter(dict[str, Any])


def format_value(value: Any) -> str:
    """Render a filter operand the way the query API expects it."""
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: str) -> str:
    if _RESERVED_CHARS & set(value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


def encode_filters(filters: Mapping[str, FilterValue]) -> QueryString:
    """Translate filter values into query-string operators.

    Ranges become inclusive ``gte``/``lte`` pairs, sets become ``in`` lists,
    booleans use ``is`` and everything else is an equality test.
    """
    query: QueryString = []
    for column in sorted(filters):
        value = filters[column]
        if isinstance(value, RangeFilter):
            if value.min is not None:
                query.append((column, f"gte.{format_value(value.min)}"))
            if value.max is not None:
                query.append((column, f"lte.{format_value(value.max)}"))
        elif isinstance(value, frozenset | set):
            members = ",".join(_quote(str(member)) for member in sorted(value))
            query.append((column, f"in.({members})"))
        elif isinstance(value, bool):
            query.append((column, f"is.{format_value(value)}"))
        else:
            query.append((column, f"eq.{format_value(value)}"))
    return query


def encode_search(search_text: str, search_fields: Sequence[str]) -> QueryString:
    """Case-insensitive substring search across several columns."""
    # Characters that would break the or=(...) grammar are dropped
    text = "".join(ch for ch in search_text.strip() if ch not in ',()*"')
    if not text or not search_fields:
        return []
    clauses = ",".join(f"{field}.ilike.*{text}*" for field in search_fields)
    return [("or", f"({clauses})")]


def encode_order(sort_field: str, direction: SortDirection) -> QueryString:
    return [("order", f"{sort_field}.{direction.value}")]


def parse_total(content_range: str | None, fallback: int) -> int:
    """Read the total row count from a ``Content-Range`` header like ``0-24/573``."""
    if not content_range or "/" not in content_range:
        return fallback
    total = content_range.rsplit("/", 1)[1]
    if total == "*":
        return fallback
    try:
        return int(total)
    except ValueError:
        return fallback


class StoreClient:
    """Client for the remote relational store.

    Requests are blocking (``requests``); the async methods run them in a
    worker thread so the event loop stays responsive.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        config: Config | None = None,
    ) -> None:
        """Initialize the store client.

        Args:
            base_url: Query API base URL (defaults to OPSDASH_STORE_URL)
            api_key: API key (defaults to OPSDASH_STORE_API_KEY)
            timeout: Request timeout in seconds
            config: Application config (falls back to defaults)

        Raises:
            ConfigurationError: If the URL or the key is missing

        """
        self.logger = logging.getLogger(__name__)
        self.config = config or Config()

        self.base_url = (base_url or self.config.store_url or "").rstrip("/")
        self.api_key = api_key
        if not self.api_key and self.config.store_api_key:
            self.api_key = self.config.store_api_key.get_secret_value()
        self.timeout = timeout if timeout is not None else self.config.request_timeout

        if not self.base_url:
            self.logger.error("Store URL not provided")
            raise ConfigurationError("Store URL must be provided as parameter or via OPSDASH_STORE_URL")
        if not self.api_key:
            self.logger.error("Store API key not provided")
            raise ConfigurationError("Store API key must be provided as parameter or via OPSDASH_STORE_API_KEY")

        self.session: requests.Session | None = None
        self.logger.debug(f"StoreClient initialized for {self.base_url}")

    def open(self) -> "StoreClient":
        """Open the HTTP session."""
        if self.session is None:
            self.logger.info("Opening store session")
            self.session = requests.Session()
        return self

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.logger.info("Closing store session")
            self.session.close()
            self.session = None

    def __enter__(self) -> "StoreClient":
        """Enter context."""
        return self.open()

    def __exit__(self, *args: Any) -> None:
        """Exit context."""
        self.close()

    @property
    def headers(self) -> dict[str, str]:
        """Get request headers."""
        return {
            "apikey": self.api_key or "",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _make_request(
        self,
        method: str,
        table: str,
        params: QueryString | None = None,
        json: Any = None,
        prefer: str | None = None,
        allow_range_error: bool = False,
    ) -> requests.Response:
        """Make a single API request and map failures to exceptions.

        Args:
            method: HTTP method
            table: Remote table name
            params: Query-string operators
            json: JSON body
            prefer: Value of the ``Prefer`` header
            allow_range_error: Return 416 responses (page past the end) instead of raising

        Returns:
            The successful response

        """
        if not self.session:
            raise RuntimeError("Client not initialized. Use context manager or open().")

        url = f"{self.base_url}/{table}"
        method_name = f"{method} {table}"
        headers = self.headers
        if prefer:
            headers["Prefer"] = prefer

        self.logger.debug(f"Making request: {method_name} {params or ''}")

        try:
            response = self.session.request(
                method, url, headers=headers, params=params, json=json, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request timeout in {method_name}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network error in {method_name}: {e}") from e

        if 200 <= response.status_code < 300:
            return response
        if response.status_code == 416 and allow_range_error:
            return response

        response_text = response.text

        # Map status codes to exceptions
        error_map = {
            400: lambda: ValidationError("request", method_name, f"Request rejected in {method_name}: {response_text}"),
            401: lambda: AuthenticationError(f"Unauthorized access in {method_name}", response_text),
            403: lambda: PermissionError(f"Access forbidden in {method_name}", response_text),
            404: lambda: NotFoundError(f"Resource not found in {method_name}", response_text),
            408: lambda: TransportError(f"Request timeout in {method_name}", 408, response_text),
            409: lambda: ValidationError("request", method_name, f"Conflict in {method_name}: {response_text}"),
            422: lambda: ValidationError("request", method_name, f"Invalid data in {method_name}: {response_text}"),
            429: lambda: TransportError(
                f"Rate limit exceeded in {method_name}",
                429,
                response_text,
                int(response.headers["Retry-After"]) if response.headers.get("Retry-After", "").isdigit() else None,
            ),
        }

        if response.status_code in error_map:
            raise error_map[response.status_code]()
        elif 500 <= response.status_code < 600:
            raise TransportError(f"Server error in {method_name}", response.status_code, response_text)
        else:
            self.logger.error(f"Unexpected response status {response.status_code} in {method_name}")
            raise StoreError(
                response.status_code,
                f"Unexpected response status {response.status_code} in {method_name}",
                response_text,
            )

    def _fetch_page(self, table: str, params: QueryParams, search_fields: Sequence[str]) -> Page[dict[str, Any]]:
        query: QueryString = [("select", "*")]
        query += encode_filters(params.filters)
        query += encode_search(params.search_text, search_fields)
        query += encode_order(params.sort_field, params.sort_direction)
        query += [("offset", str(params.offset)), ("limit", str(params.page_size))]

        response = self._make_request("GET", table, params=query, prefer="count=exact", allow_range_error=True)
        rows = [] if response.status_code == 416 else response.json()
        total = parse_total(response.headers.get("Content-Range"), params.offset + len(rows))

        self.logger.debug(f"Fetched {len(rows)} of {total} rows from {table}")
        return Page(items=rows, total_count=total, page=params.page, page_size=params.page_size)

    def _select(
        self,
        table: str,
        filters: Mapping[str, FilterValue],
        order: tuple[str, SortDirection] | None = None,
    ) -> list[dict[str, Any]]:
        query: QueryString = [("select", "*")]
        query += encode_filters(filters)
        if order:
            query += encode_order(*order)
        return self._make_request("GET", table, params=query).json()

    def _get(self, table: str, record_id: str) -> dict[str, Any]:
        query = [("select", "*"), ("id", f"eq.{record_id}"), ("limit", "1")]
        rows = self._make_request("GET", table, params=query).json()
        if not rows:
            raise NotFoundError(f"{table} record '{record_id}' not found")
        return rows[0]

    def _insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        body = _JSON_ROW.dump_python(dict(row), mode="json")
        rows = self._make_request("POST", table, json=body, prefer="return=representation").json()
        self.logger.info(f"Inserted record into {table}")
        return rows[0] if isinstance(rows, list) else rows

    def _update(self, table: str, record_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        body = _JSON_ROW.dump_python(dict(changes), mode="json")
        rows = self._make_request(
            "PATCH", table, params=[("id", f"eq.{record_id}")], json=body, prefer="return=representation"
        ).json()
        if not rows:
            raise NotFoundError(f"{table} record '{record_id}' not found")
        self.logger.info(f"Updated {table} record {record_id}")
        return rows[0]

    def _delete(self, table: str, record_id: str) -> None:
        self._make_request("DELETE", table, params=[("id", f"eq.{record_id}")], prefer="return=minimal")
        self.logger.info(f"Deleted {table} record {record_id}")

    def _count(self, table: str, query: QueryString) -> int:
        response = self._make_request("HEAD", table, params=[("select", "id"), *query], prefer="count=exact")
        return parse_total(response.headers.get("Content-Range"), 0)

    async def fetch_page(
        self, table: str, params: QueryParams, search_fields: Sequence[str] = ()
    ) -> Page[dict[str, Any]]:
        """Fetch one page of rows matching ``params``.

        Args:
            table: Remote table name
            params: Filters, search, sort and pagination
            search_fields: Columns the free-text search looks at

        Returns:
            Page of raw rows with the exact total count

        """
        return await asyncio.to_thread(self._fetch_page, str(table), params, tuple(search_fields))

    async def select(
        self,
        table: str,
        filters: Mapping[str, FilterValue],
        order: tuple[str, SortDirection] | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch all rows matching ``filters`` (no pagination)."""
        return await asyncio.to_thread(self._select, str(table), filters, order)

    async def get(self, table: str, record_id: str) -> dict[str, Any]:
        """Fetch a single row by id, bypassing any cache."""
        return await asyncio.to_thread(self._get, str(table), record_id)

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored."""
        return await asyncio.to_thread(self._insert, str(table), row)

    async def update(self, table: str, record_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Update columns of a row and return it as stored."""
        return await asyncio.to_thread(self._update, str(table), record_id, changes)

    async def delete(self, table: str, record_id: str) -> None:
        """Delete a row by id."""
        await asyncio.to_thread(self._delete, str(table), record_id)

    async def count(self, table: str, filters: Mapping[str, FilterValue] | None = None) -> int:
        """Count rows matching ``filters``."""
        return await asyncio.to_thread(self._count, str(table), encode_filters(filters or {}))

    async def count_created_since(self, table: str, since: datetime) -> int:
        """Count rows created strictly after ``since``."""
        return await asyncio.to_thread(self._count, str(table), [("created_at", f"gt.{since.isoformat()}")])
