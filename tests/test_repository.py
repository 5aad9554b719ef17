"""Tests for entity repositories."""

from datetime import UTC, datetime

import pytest

from opsdash.api.repository import EntityRepository, InvoiceRepository, OrderRepository
from opsdash.core.constants import EntityType
from opsdash.exceptions import ValidationError
from opsdash.models.directory import Customer
from opsdash.models.order import AssignedRole, Order, OrderStatus
from opsdash.models.query import QueryParams


@pytest.fixture
def customers(store, coordinator):
    store.add("customers", id="c1", email="ada@example.com", full_name="Ada Lovelace")
    store.add("customers", id="c2", email="alan@example.com", full_name="Alan Turing")
    return EntityRepository(store, coordinator, EntityType.CUSTOMERS, Customer, search_fields=("full_name", "email"))


@pytest.fixture
def orders(store, coordinator, make_order_row):
    store.tables["orders"].append(make_order_row("o-1"))
    store.tables["orders"].append(make_order_row("o-2", created_at=datetime(2025, 9, 20, tzinfo=UTC)))
    return OrderRepository(store, coordinator)


class TestEntityRepository:
    """Generic repository behaviour."""

    @pytest.mark.asyncio
    async def test_fetch_returns_models(self, customers):
        page = await customers.fetch(QueryParams(search_text="turing"))

        assert page.total_count == 1
        assert isinstance(page.items[0], Customer)
        assert page.items[0].full_name == "Alan Turing"

    @pytest.mark.asyncio
    async def test_mutations_invalidate_namespace(self, customers, coordinator, result_cache):
        params = QueryParams()
        await coordinator.execute(params, customers.fetch, namespace=customers.namespace)
        key = params.canonical_key("customers")
        assert result_cache.get(key) is not None

        await customers.update("c1", {"company_name": "Analytical Engines"})
        assert result_cache.get(key) is None

        await coordinator.execute(params, customers.fetch, namespace=customers.namespace)
        await customers.delete("c2")
        assert result_cache.get(key) is None

        await coordinator.execute(params, customers.fetch, namespace=customers.namespace)
        created = await customers.create({"email": "grace@example.com", "full_name": "Grace Hopper"})
        assert created.full_name == "Grace Hopper"
        assert result_cache.get(key) is None

    @pytest.mark.asyncio
    async def test_empty_update_rejected(self, customers):
        with pytest.raises(ValidationError):
            await customers.update("c1", {})


class TestOrderRepository:
    """Order specific rules."""

    @pytest.mark.parametrize(
        "changes",
        [
            {"status": "completed"},
            {"assigned_designer_id": "D"},
            {"assigned_sales_rep_id": "S", "order_number": "ORD-9"},
            {"assigned_role": "designer"},
        ],
    )
    @pytest.mark.asyncio
    async def test_lifecycle_columns_are_protected(self, orders, store, changes):
        with pytest.raises(ValidationError, match="lifecycle transition"):
            await orders.update("o-1", changes)
        assert store.calls_to("update") == 0

    @pytest.mark.asyncio
    async def test_plain_columns_can_be_updated(self, orders):
        order = await orders.update("o-1", {"order_number": "ORD-42"})
        assert order.order_number == "ORD-42"

    @pytest.mark.asyncio
    async def test_write_transition(self, orders, store):
        order = await orders.get("o-1")
        moved = order.model_copy(update={"status": OrderStatus.IN_PROGRESS})

        stored = await orders.write_transition(moved)

        assert stored.status == OrderStatus.IN_PROGRESS
        assert store.tables["orders"][0]["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_write_transition_rejects_inconsistent_assignment(self, orders, store):
        order = await orders.get("o-1")
        both = order.model_copy(update={"assigned_sales_rep_id": "rep-1", "assigned_designer_id": "des-1"})

        with pytest.raises(ValidationError, match="same time"):
            await orders.write_transition(both)
        assert store.calls_to("update") == 0

    @pytest.mark.asyncio
    async def test_rows_without_role_still_load(self, orders, store, make_order_row):
        store.tables["orders"].append(make_order_row("o-3", assigned_sales_rep_id="rep-1"))
        store.tables["orders"].append(
            make_order_row("o-4", assigned_sales_rep_id="rep-2", assigned_designer_id="des-2")
        )

        page = await orders.fetch(QueryParams(page_size=10))

        by_id = {order.id: order for order in page.items}
        assert set(by_id) == {"o-1", "o-2", "o-3", "o-4"}
        assert by_id["o-3"].assigned_role == AssignedRole.SALES_REP
        assert by_id["o-4"].assigned_role is None
        assert by_id["o-4"].assignee_id == "rep-2"

    @pytest.mark.asyncio
    async def test_get_many_skips_unknown_ids(self, orders):
        found = await orders.get_many(["o-1", "o-2", "nope"])
        assert set(found) == {"o-1", "o-2"}
        assert all(isinstance(order, Order) for order in found.values())
        assert await orders.get_many([]) == {}

    @pytest.mark.asyncio
    async def test_unpaid_for_customer_newest_first(self, orders, store, make_order_row):
        store.tables["orders"].append(make_order_row("o-3", payment_status="paid"))
        result = await orders.unpaid_for_customer("cust-1")
        assert [order.id for order in result] == ["o-2", "o-1"]


class TestInvoiceRepository:
    """Invoice specific rules."""

    @pytest.fixture
    def invoices(self, store, coordinator):
        store.add(
            "invoices",
            id="inv-1",
            customer_id="c1",
            invoice_title="Sept",
            order_ids=["o-1"],
            total_amount="40.00",
            status="unpaid",
        )
        return InvoiceRepository(store, coordinator)

    @pytest.mark.asyncio
    async def test_reads_store_column_names(self, invoices):
        invoice = await invoices.get("inv-1")
        assert invoice.title == "Sept"
        assert invoice.order_ids == frozenset({"o-1"})

    @pytest.mark.asyncio
    async def test_order_set_is_immutable(self, invoices):
        with pytest.raises(ValidationError, match="immutable"):
            await invoices.update("inv-1", {"order_ids": ["o-1", "o-2"]})

    @pytest.mark.asyncio
    async def test_status_and_title_can_change(self, invoices, store):
        invoice = await invoices.update("inv-1", {"status": "paid", "title": "September"})
        assert invoice.is_paid
        assert invoice.title == "September"
        assert store.tables["invoices"][0]["invoice_title"] == "September"
