"""Tests for query params merging and canonical keys."""

from decimal import Decimal

import pytest

from opsdash.core.constants import SortDirection
from opsdash.models.query import QueryParams, RangeFilter


class TestMerge:
    """QueryParams.merge rules."""

    def test_last_writer_wins(self):
        params = QueryParams().merge({"sort_field": "total_amount"}).merge({"sort_field": "order_number"})
        assert params.sort_field == "order_number"

    def test_search_resets_page(self):
        params = QueryParams(page=4).merge({"search_text": "ORD-1"})
        assert params.page == 1
        assert params.search_text == "ORD-1"

    def test_filter_resets_page_even_when_page_is_patched(self):
        params = QueryParams(page=4).merge({"page": 7, "filters": {"status": "new"}})
        assert params.page == 1

    def test_page_only_patch_keeps_everything_else(self):
        base = QueryParams(search_text="abc", filters={"status": "new"})
        params = base.merge({"page": 3})
        assert params.page == 3
        assert params.search_text == "abc"
        assert params.filters == {"status": "new"}

    def test_filters_merge_per_key(self):
        base = QueryParams(filters={"status": "new", "payment_status": "unpaid"})
        params = base.merge({"filters": {"status": "completed"}})
        assert params.filters == {"status": "completed", "payment_status": "unpaid"}

    def test_empty_filter_value_removes_key(self):
        base = QueryParams(filters={"status": "new", "payment_status": "unpaid"})
        params = base.merge({"filters": {"status": None, "payment_status": ""}})
        assert params.filters == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown query fields"):
            QueryParams().merge({"pagee": 2})

    def test_merge_returns_new_instance(self):
        base = QueryParams()
        merged = base.merge({"page": 2})
        assert base.page == 1
        assert merged is not base


class TestEmptyFilters:
    """Empty filters never influence equality."""

    def test_empty_values_dropped(self):
        params = QueryParams(
            filters={"status": "", "role": frozenset(), "total_amount": RangeFilter(), "customer_id": None}
        )
        assert params.filters == {}
        assert params == QueryParams()

    def test_half_open_range_kept(self):
        params = QueryParams(filters={"total_amount": RangeFilter(min=Decimal("10"))})
        assert params.filters["total_amount"].min == Decimal("10")
        assert params.filters["total_amount"].max is None

    def test_false_is_a_real_filter(self):
        params = QueryParams(filters={"read": False})
        assert params.filters == {"read": False}


class TestCanonicalKey:
    """Canonical cache keys."""

    def test_key_is_namespaced(self):
        assert QueryParams().canonical_key("orders").startswith("orders:")

    def test_filter_order_does_not_matter(self):
        a = QueryParams(filters={"status": "new", "customer_id": "c1"})
        b = QueryParams(filters={"customer_id": "c1", "status": "new"})
        assert a.canonical_key("orders") == b.canonical_key("orders")

    def test_set_members_are_sorted(self):
        a = QueryParams(filters={"status": frozenset({"new", "completed"})})
        b = QueryParams(filters={"status": frozenset({"completed", "new"})})
        assert a.canonical_key("orders") == b.canonical_key("orders")

    def test_distinct_params_have_distinct_keys(self):
        base = QueryParams()
        keys = {
            base.canonical_key("orders"),
            base.canonical_key("invoices"),
            base.merge({"page": 2}).canonical_key("orders"),
            base.merge({"sort_direction": SortDirection.ASC}).canonical_key("orders"),
            base.merge({"filters": {"total_amount": RangeFilter(min=1)}}).canonical_key("orders"),
        }
        assert len(keys) == 5

    def test_empty_filter_does_not_change_key(self):
        assert QueryParams(filters={"status": ""}).canonical_key("orders") == QueryParams().canonical_key("orders")


def test_offset():
    assert QueryParams(page=3, page_size=25).offset == 50
