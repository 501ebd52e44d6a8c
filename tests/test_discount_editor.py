"""
Tests for the discount create/edit session and the list view.
"""
import asyncio
from decimal import Decimal

import pytest

from storedesk.common.errors import LookupNotFound, ValidationFailed
from storedesk.discounts.service import DiscountEditor, list_discounts

from conftest import make_discount


@pytest.fixture
def editor(catalog, discounts_client, now):
    return DiscountEditor("b1", catalog, client=discounts_client, tz="Asia/Manila", now=now)


class TestEditorSession:

    def test_new_session_defaults_to_one_hour_window(self, editor):
        assert editor.form.start_datetime == "2025-10-19T20:00"
        assert editor.form.end_datetime == "2025-10-19T21:00"
        assert editor.discount_id is None
        assert len(editor.selection) == 0

    def test_add_and_remove_products(self, editor):
        assert editor.add_product("p1")
        assert not editor.add_product("p1")
        assert editor.selection.get("p1").discounted_price == Decimal("1000.00")
        assert editor.remove_product("p1")
        assert len(editor.selection) == 0

    def test_product_outside_catalog(self, editor):
        with pytest.raises(LookupNotFound):
            editor.add_product("p404")

    def test_per_line_edits(self, editor):
        editor.add_product("p1")
        editor.set_discount_percentage("p1", 25)
        assert editor.selection.get("p1").discounted_price == Decimal("750.00")
        editor.set_discounted_price("p1", 800)
        assert editor.selection.get("p1").discount_percentage == Decimal("20.00")
        line = editor.set_stock_limit("p1", 10)
        assert (line.stock_limit, line.has_no_stock_limit) == (10, False)
        line = editor.set_stock_limit("p1", None)
        assert (line.stock_limit, line.has_no_stock_limit) == (None, True)
        line = editor.set_purchase_limit("p1", 2)
        assert (line.purchase_limit, line.has_no_purchase_limit) == (2, False)

    def test_batch_through_editor(self, editor):
        editor.add_product("p1")
        editor.add_product("p2")
        assert editor.apply_batch(["p2"], percentage=20, purchase_limit_mode="set_limit", purchase_limit_value=1) == ["p2"]
        assert editor.selection.get("p2").discounted_price == Decimal("200.00")
        assert editor.selection.get("p1").discounted_price == Decimal("1000.00")

    def test_errors_reflect_current_state(self, editor):
        editor.form.name = "Weekend Special"
        editor.add_product("p2")
        editor.set_stock_limit("p2", 6)
        errors = editor.errors()
        assert set(errors) == {"discount_value", "stock_limit"}


class TestLoad:

    def test_existing_discount_shown_in_local_time(self, editor):
        editor.load(make_discount(
            end_datetime="2025-10-31T15:59:00Z",
            applicable_products=[
                {"product_id": "p1", "discounted_price": 900, "stock_limit": 5},
                {"product_id": "gone", "discounted_price": 1},
            ],
        ))
        assert editor.discount_id == "d1"
        assert editor.form.start_datetime == "2025-10-01T08:00"
        assert editor.form.end_datetime == "2025-10-31T23:59"
        assert editor.selection.ids() == ["p1"]
        assert editor.selection.get("p1").stock_limit == 5

    def test_edit_fetches_catalog_and_discount(self, discounts_client):
        discounts_client.get_discount.return_value = make_discount()
        editor = asyncio.run(DiscountEditor.edit("b1", "d1", client=discounts_client, tz="UTC"))
        discounts_client.fetch_products.assert_awaited_once_with("b1")
        discounts_client.get_discount.assert_awaited_once_with("d1")
        assert editor.form.name == "Weekend Special"
        assert editor.form.end_datetime == ""


class TestSubmit:

    def _ready(self, editor):
        editor.form.name = "Weekend Special"
        editor.add_product("p1")
        editor.set_discount_percentage("p1", 25)
        return editor

    def test_new_session_creates(self, editor, discounts_client):
        discounts_client.create_discount.return_value = make_discount()
        asyncio.run(self._ready(editor).submit())
        payload = discounts_client.create_discount.await_args.args[0]
        assert payload["start_datetime"] == "2025-10-19T12:00:00.000Z"
        assert payload["end_datetime"] == "2025-10-19T13:00:00.000Z"
        assert payload["business_id"] == "b1"
        assert payload["applicable_products"][0]["discounted_price"] == 750.0
        discounts_client.update_discount.assert_not_awaited()

    def test_loaded_session_updates(self, editor, discounts_client):
        discounts_client.update_discount.return_value = make_discount()
        editor.load(make_discount(id="d7"))
        asyncio.run(self._ready(editor).submit())
        assert discounts_client.update_discount.await_args.args[0] == "d7"
        discounts_client.create_discount.assert_not_awaited()

    def test_invalid_session_never_reaches_upstream(self, editor, discounts_client):
        with pytest.raises(ValidationFailed):
            asyncio.run(editor.submit())
        discounts_client.create_discount.assert_not_awaited()


class TestListDiscounts:

    def test_list_with_effective_status_and_counts(self, discounts_client, now):
        discounts_client.list_discounts.return_value = [
            make_discount(id="d1"),
            make_discount(id="d2", end_datetime="2025-10-18T00:00:00Z"),
        ]
        result = asyncio.run(list_discounts("b1", "expired", client=discounts_client, now=now))
        assert [d["id"] for d in result["discounts"]] == ["d2"]
        assert result["discounts"][0]["effective_status"] == "expired"
        assert result["discounts"][0]["status"] == "active"
        assert result["counts"]["ongoing"] == 1
