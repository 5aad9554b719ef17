"""Composition root wiring the client, cache, engines and services together."""

import logging
from typing import Any

from opsdash.api.client import StoreClient
from opsdash.api.repository import EntityRepository, InvoiceRepository, OrderRepository
from opsdash.cache.markers import MarkerStore
from opsdash.cache.results import ResultCache
from opsdash.config import Config
from opsdash.core.constants import EntityType
from opsdash.core.coordinator import RequestCoordinator
from opsdash.core.engine import PaginatedQueryEngine
from opsdash.core.freshness import FreshnessTracker
from opsdash.models.directory import Customer, Employee, Product, StockDesign
from opsdash.models.query import QueryParams
from opsdash.services.invoicing import InvoiceAggregator
from opsdash.services.lifecycle import OrderLifecycle
from opsdash.services.sinks import StoreActivityLog, StoreNotificationSink

logger = logging.getLogger(__name__)


class Dashboard:
    """Owns the shared result cache and everything built on top of it."""

    def __init__(
        self,
        client: StoreClient,
        config: Config | None = None,
        cache: ResultCache | None = None,
        markers: MarkerStore | None = None,
        actor_id: str | None = None,
    ) -> None:
        """Initialize the dashboard.

        Args:
            client: Store client (opened by ``__enter__`` if not open yet)
            config: Application config
            cache: Result cache shared by all engines
            markers: Freshness marker storage
            actor_id: Employee recorded in the activity log
        """
        self.config = config or client.config
        self.client = client
        self.cache = cache or ResultCache(self.config.cache_ttl_seconds, self.config.cache_dir)
        self.markers = markers or MarkerStore(self.config.marker_dir)
        self.coordinator = RequestCoordinator(
            self.cache, max_retries=self.config.max_retries, base_delay=self.config.retry_base_delay
        )

        self.orders = OrderRepository(client, self.coordinator)
        self.invoices = InvoiceRepository(client, self.coordinator)
        self.employees = EntityRepository(
            client, self.coordinator, EntityType.EMPLOYEES, Employee, search_fields=("full_name", "email")
        )
        self.customers = EntityRepository(
            client, self.coordinator, EntityType.CUSTOMERS, Customer, search_fields=("full_name", "email")
        )
        self.products = EntityRepository(
            client, self.coordinator, EntityType.PRODUCTS, Product, search_fields=("title", "description")
        )
        self.stock_designs = EntityRepository(
            client, self.coordinator, EntityType.STOCK_DESIGNS, StockDesign, search_fields=("name", "description")
        )

        self.lifecycle = OrderLifecycle(
            self.orders,
            notifications=StoreNotificationSink(client),
            activity_log=StoreActivityLog(client, actor_id),
        )
        self.invoicing = InvoiceAggregator(self.orders, self.invoices)

    @classmethod
    def from_config(cls, config: Config | None = None, actor_id: str | None = None) -> "Dashboard":
        """Build a dashboard and its store client from configuration."""
        config = config or Config()
        return cls(StoreClient(config=config), config=config, actor_id=actor_id)

    def engine(
        self, repository: EntityRepository[Any], initial_params: QueryParams | None = None
    ) -> PaginatedQueryEngine:
        """Create a query engine over one repository."""
        params = initial_params or QueryParams(page_size=self.config.default_page_size)
        return PaginatedQueryEngine(
            repository.fetch,
            self.coordinator,
            namespace=repository.namespace,
            initial_params=params,
            quiet_period=self.config.quiet_period,
        )

    def orders_engine(self, initial_params: QueryParams | None = None) -> PaginatedQueryEngine:
        return self.engine(self.orders, initial_params)

    def invoices_engine(self, initial_params: QueryParams | None = None) -> PaginatedQueryEngine:
        return self.engine(self.invoices, initial_params)

    def freshness(self, viewer_id: str) -> FreshnessTracker:
        """Badge tracker for one viewer; section keys are table names."""
        return FreshnessTracker(
            self.client.count_created_since,
            self.markers,
            viewer_id,
            window_hours=self.config.freshness_window_hours,
        )

    def close(self) -> None:
        """Close the client and both caches."""
        self.client.close()
        self.cache.close()
        self.markers.close()
        logger.debug("Dashboard closed")

    def __enter__(self) -> "Dashboard":
        self.client.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
