"""Typed repositories over the store client.

Each repository turns raw rows into entity models, exposes a fetcher for the
paginated query engine and invalidates its cache namespace after every write.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from opsdash.api.client import StoreClient
from opsdash.core.constants import ORDER_LIFECYCLE_FIELDS, EntityType, SortDirection
from opsdash.core.coordinator import RequestCoordinator
from opsdash.exceptions import ValidationError
from opsdash.models.invoice import Invoice, InvoiceDraft
from opsdash.models.order import Order, PaymentStatus, lifecycle_columns
from opsdash.models.page import Page
from opsdash.models.query import QueryParams, RangeFilter

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class EntityRepository(Generic[M]):
    """Reads and writes one remote table as ``model`` instances."""

    def __init__(
        self,
        client: StoreClient,
        coordinator: RequestCoordinator,
        entity: EntityType,
        model: type[M],
        search_fields: Sequence[str] = (),
    ) -> None:
        """Initialize the repository.

        Args:
            client: Store client
            coordinator: Coordinator owning the shared result cache
            entity: Remote table, also the cache namespace
            model: Entity model rows are validated into
            search_fields: Columns matched by free-text search
        """
        self.client = client
        self.coordinator = coordinator
        self.entity = entity
        self.model = model
        self.search_fields = tuple(search_fields)

    @property
    def namespace(self) -> str:
        return str(self.entity)

    def parse(self, row: Mapping[str, Any]) -> M:
        return self.model.model_validate(row)

    async def fetch(self, params: QueryParams) -> Page:
        """Fetch one page of entities; usable as a query engine fetcher."""
        raw = await self.client.fetch_page(self.entity, params, self.search_fields)
        return Page(
            items=[self.parse(row) for row in raw.items],
            total_count=raw.total_count,
            page=raw.page,
            page_size=raw.page_size,
        )

    async def get(self, record_id: str) -> M:
        """Read one entity straight from the store."""
        return self.parse(await self.client.get(self.entity, record_id))

    async def create(self, data: Mapping[str, Any]) -> M:
        row = await self.client.insert(self.entity, data)
        self.invalidate()
        return self.parse(row)

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> M:
        if not changes:
            raise ValidationError("changes", changes, f"No changes given for {self.entity} '{record_id}'")
        row = await self.client.update(self.entity, record_id, changes)
        self.invalidate()
        return self.parse(row)

    async def delete(self, record_id: str) -> None:
        await self.client.delete(self.entity, record_id)
        self.invalidate()

    def invalidate(self) -> int:
        """Drop cached pages of this entity type."""
        return self.coordinator.invalidate(self.namespace)


class OrderRepository(EntityRepository[Order]):
    """Orders. Status and assignment columns are written only by the lifecycle."""

    def __init__(self, client: StoreClient, coordinator: RequestCoordinator) -> None:
        super().__init__(client, coordinator, EntityType.ORDERS, Order, search_fields=("order_number",))

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> Order:
        """Update plain order columns.

        Raises:
            ValidationError: If the changes touch status or assignment columns
        """
        protected = sorted(ORDER_LIFECYCLE_FIELDS & set(changes))
        if protected:
            raise ValidationError(
                protected[0],
                changes[protected[0]],
                f"Order columns {', '.join(protected)} can only be changed through a lifecycle transition",
            )
        return await super().update(record_id, changes)

    async def write_transition(self, order: Order, include_assignment: bool = True) -> Order:
        """Persist the columns a lifecycle transition changed.

        Args:
            order: Order as it results from the transition
            include_assignment: Also write the assignee and role columns

        Raises:
            ValidationError: If the assignment being written is inconsistent
        """
        if include_assignment:
            problem = order.assignment_error()
            if problem:
                raise ValidationError("assigned_role", order.assigned_role, problem)
        row = await self.client.update(self.entity, order.id, lifecycle_columns(order, include_assignment))
        self.invalidate()
        logger.info(f"Order {order.order_number} is now {order.status.value}")
        return self.parse(row)

    async def get_many(self, order_ids: Iterable[str]) -> dict[str, Order]:
        """Read several orders fresh from the store, keyed by id.

        Ids that do not exist are simply missing from the result.
        """
        ids = frozenset(order_ids)
        if not ids:
            return {}
        rows = await self.client.select(self.entity, {"id": ids})
        orders = [self.parse(row) for row in rows]
        return {order.id: order for order in orders}

    async def unpaid_for_customer(
        self,
        customer_id: str,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[Order]:
        """Unpaid orders of a customer, newest first, with inclusive date bounds."""
        filters: dict[str, Any] = {
            "customer_id": customer_id,
            "payment_status": PaymentStatus.UNPAID.value,
        }
        if created_from is not None or created_to is not None:
            filters["created_at"] = RangeFilter(min=created_from, max=created_to)
        rows = await self.client.select(self.entity, filters, order=("created_at", SortDirection.DESC))
        return [self.parse(row) for row in rows]


class InvoiceRepository(EntityRepository[Invoice]):
    """Invoices. The order set and total are fixed once issued."""

    FROZEN_FIELDS = frozenset({"order_ids", "total_amount", "customer_id"})

    def __init__(self, client: StoreClient, coordinator: RequestCoordinator) -> None:
        super().__init__(client, coordinator, EntityType.INVOICES, Invoice, search_fields=("invoice_title",))

    def parse(self, row: Mapping[str, Any]) -> Invoice:
        return Invoice.from_row(dict(row))

    async def create_from_draft(self, draft: InvoiceDraft) -> Invoice:
        return await self.create(draft.to_row())

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> Invoice:
        """Update status, title or payment link of an invoice.

        Raises:
            ValidationError: If the changes touch the order set, total or customer
        """
        frozen = sorted(self.FROZEN_FIELDS & set(changes))
        if frozen:
            raise ValidationError(
                frozen[0], changes[frozen[0]], "Issued invoices are immutable; create a new invoice instead"
            )
        if "title" in changes:
            changes = dict(changes)
            changes["invoice_title"] = changes.pop("title")
        return await super().update(record_id, changes)
