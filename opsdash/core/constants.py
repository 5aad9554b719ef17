"""
Constants and configuration values for the operations dashboard core.
"""

from enum import IntEnum, StrEnum

# Version
PACKAGE_VERSION = "0.1.0"

# Currency precision used for order and invoice totals
CURRENCY_QUANTUM = "0.01"


class EntityType(StrEnum):
    """Remote tables the dashboard reads and writes.

    The value doubles as the cache namespace for query results.
    """

    ORDERS = "orders"
    EMPLOYEES = "employees"
    CUSTOMERS = "customers"
    PRODUCTS = "products"
    STOCK_DESIGNS = "stock_designs"
    INVOICES = "invoices"
    NOTIFICATIONS = "notifications"
    ORDER_LOGS = "order_logs"


class SortDirection(StrEnum):
    """Sort direction for paginated queries."""

    ASC = "asc"
    DESC = "desc"


class PaginationConstants(IntEnum):
    """Pagination defaults and limits."""

    DEFAULT_PAGE = 1
    DEFAULT_PAGE_SIZE = 25
    MAX_PAGE_SIZE = 1000


class CacheConstants(IntEnum):
    """Result cache defaults."""

    DEFAULT_TTL_SECONDS = 300


class RetryConstants(IntEnum):
    """Request coordinator retry defaults."""

    MAX_RETRIES = 3


class APIConstants(IntEnum):
    """Remote store API constants."""

    REQUEST_TIMEOUT = 30


class FreshnessConstants(IntEnum):
    """Freshness tracker defaults."""

    DEFAULT_WINDOW_HOURS = 24


# Debounce quiet period in seconds
DEFAULT_QUIET_PERIOD = 0.3

# Delay unit for linear retry backoff in seconds
DEFAULT_RETRY_BASE_DELAY = 1.0

# Reloads of a page whose namespace keeps being written while it loads
MAX_STALE_RELOADS = 3

DEFAULT_SORT_FIELD = "created_at"

# Columns that only the order lifecycle may write
ORDER_LIFECYCLE_FIELDS = frozenset(
    {
        "status",
        "assigned_sales_rep_id",
        "assigned_designer_id",
        "assigned_role",
    }
)
