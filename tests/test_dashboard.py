"""Tests for the dashboard composition root."""

from datetime import UTC, datetime, timedelta

import pytest

from opsdash.config import Config
from opsdash.dashboard import Dashboard
from opsdash.models.order import Assign, OrderStatus


@pytest.fixture
def config(tmp_path):
    return Config(
        OPSDASH_STORE_URL="https://db.example.com/rest/v1",
        OPSDASH_STORE_API_KEY="test-key",
        OPSDASH_CACHE_DIR=tmp_path / "cache",
        OPSDASH_MARKER_DIR=tmp_path / "markers",
        OPSDASH_QUIET_PERIOD=0.01,
        OPSDASH_RETRY_BASE_DELAY=0,
        OPSDASH_DEFAULT_PAGE_SIZE=10,
    )


@pytest.fixture
def dashboard(store, config, make_order_row):
    store.tables["orders"].append(make_order_row("o-1"))
    store.tables["orders"].append(make_order_row("o-2", customer_id="cust-2"))
    with Dashboard(store, config=config, actor_id="admin-1") as dashboard:
        yield dashboard


def test_from_config_builds_store_client(config):
    dashboard = Dashboard.from_config(config)
    try:
        assert dashboard.client.base_url == "https://db.example.com/rest/v1"
        assert dashboard.coordinator.max_retries == config.max_retries
        assert dashboard.cache.ttl_seconds == 300
    finally:
        dashboard.close()


@pytest.mark.asyncio
async def test_orders_engine_uses_configured_page_size(dashboard):
    engine = dashboard.orders_engine()
    try:
        state = await engine.start()
    finally:
        engine.close()

    assert state.params.page_size == 10
    assert {order.id for order in state.data.items} == {"o-1", "o-2"}


@pytest.mark.asyncio
async def test_lifecycle_change_refreshes_engine_data(dashboard, store):
    engine = dashboard.orders_engine()
    try:
        await engine.start()
        order = next(o for o in engine.data.items if o.id == "o-1")

        await dashboard.lifecycle.apply(order, Assign(designer_id="D"))
        await dashboard.lifecycle.pending_side_effects()
        state = await engine.refetch()
    finally:
        engine.close()

    refreshed = next(o for o in state.data.items if o.id == "o-1")
    assert refreshed.status == OrderStatus.IN_PROGRESS
    assert store.tables["notifications"][0]["user_id"] == "D"
    assert store.tables["order_logs"][0]["performed_by"] == "admin-1"


@pytest.mark.asyncio
async def test_sink_write_failure_keeps_transition(dashboard, store):
    store.fail_inserts.add("notifications")
    order = await dashboard.orders.get("o-1")

    stored = await dashboard.lifecycle.apply(order, Assign(sales_rep_id="S"))
    await dashboard.lifecycle.pending_side_effects()

    assert stored.status == OrderStatus.IN_PROGRESS
    assert store.tables["orders"][0]["assigned_sales_rep_id"] == "S"
    assert len(store.tables["order_logs"]) == 1


@pytest.mark.asyncio
async def test_freshness_counts_by_table(dashboard, store):
    now = datetime.now(UTC)
    store.add("customers", email="a@example.com", full_name="A", created_at=now - timedelta(hours=1))

    tracker = dashboard.freshness("admin-1")
    counts = await tracker.badge_counts(["customers", "orders"])

    assert counts["customers"] == 1
    tracker.mark_seen("customers")
    assert await tracker.badge_count("customers") == 0


@pytest.mark.asyncio
async def test_invoice_flow(dashboard, store):
    candidates = await dashboard.invoicing.unpaid_candidates("cust-1")
    draft = await dashboard.invoicing.build_invoice("cust-1", [o.id for o in candidates], "Sept")
    invoice = await dashboard.invoicing.issue_invoice(draft)

    assert invoice.order_ids == frozenset({"o-1"})
    assert len(store.tables["invoices"]) == 1
