"""Tests for the cart aggregator."""

import pytest

from marketplace.common.errors import (
    CartItemNotFound,
    InsufficientStock,
    InvalidQuantity,
    PersistenceError,
    ProductUnavailable,
)
from marketplace.common.models import CartItem, Product, ProductStatus


class TestAddItem:
    def test_creates_cart_with_price_snapshot(self, carts, make_product):
        pid = make_product(price_minor=100000, quantity=10)
        cart = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=5)

        assert cart["total_items"] == 1
        line = cart["items"][0]
        assert line["product_id"] == pid
        assert line["quantity"] == 5
        assert line["unit_price_minor"] == 100000
        assert line["subtotal_minor"] == 500000
        assert cart["total_minor"] == 500000
        assert cart["total"] == 5000.0

    def test_merges_same_product_into_one_line(self, carts, make_product):
        pid = make_product(quantity=10)
        carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=2)
        cart = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=3)

        assert cart["total_items"] == 1
        assert cart["items"][0]["quantity"] == 5
        assert cart["items"][0]["subtotal_minor"] == 500000

    def test_merge_keeps_original_snapshot_price(self, db, carts, make_product):
        pid = make_product(price_minor=100000, quantity=10)
        carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=1)
        with db.session() as session:
            session.get(Product, pid).price_minor = 150000
        cart = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=1)

        assert cart["items"][0]["unit_price_minor"] == 100000
        assert cart["items"][0]["subtotal_minor"] == 200000

    def test_merged_quantity_checked_against_stock(self, carts, make_product):
        pid = make_product(quantity=5)
        carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=4)
        with pytest.raises(InsufficientStock):
            carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=2)

    def test_quantity_above_stock(self, carts, make_product):
        pid = make_product(quantity=5)
        with pytest.raises(InsufficientStock):
            carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=6)

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5, None])
    def test_invalid_quantity(self, carts, make_product, quantity):
        pid = make_product()
        with pytest.raises(InvalidQuantity):
            carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=quantity)

    def test_unavailable_product(self, carts, make_product):
        pid = make_product(status=ProductStatus.SOLD_OUT)
        with pytest.raises(ProductUnavailable):
            carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=1)

    def test_unknown_product(self, carts):
        with pytest.raises(ProductUnavailable):
            carts.add_item(buyer_id="buyer-1", product_id="nope", quantity=1)

    def test_adding_does_not_reserve_stock(self, carts, make_product, product_row):
        pid = make_product(quantity=10)
        carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=4)
        carts.add_item(buyer_id="buyer-2", product_id=pid, quantity=8)
        assert product_row(pid)[0] == 10


class TestCartLifecycle:
    def test_get_cart_for_new_buyer_is_empty(self, carts):
        cart = carts.get_cart("nobody")
        assert cart["items"] == []
        assert cart["total_minor"] == 0
        assert cart["id"] is None

    def test_get_or_create_is_stable(self, carts):
        first = carts.get_or_create_cart("buyer-1")
        second = carts.get_or_create_cart("buyer-1")
        assert first["id"] is not None
        assert first["id"] == second["id"]

    def test_update_quantity(self, carts, make_product):
        pid = make_product(quantity=10)
        item_id = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=2)["items"][0]["id"]
        cart = carts.update_item_quantity(buyer_id="buyer-1", item_id=item_id, quantity=7)
        assert cart["items"][0]["quantity"] == 7
        assert cart["items"][0]["subtotal_minor"] == 700000

    def test_update_rechecks_current_stock(self, db, carts, make_product):
        pid = make_product(quantity=10)
        item_id = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=2)["items"][0]["id"]
        with db.session() as session:
            session.get(Product, pid).available_quantity = 3
        with pytest.raises(InsufficientStock):
            carts.update_item_quantity(buyer_id="buyer-1", item_id=item_id, quantity=4)

    def test_update_rejects_zero(self, carts, make_product):
        pid = make_product()
        item_id = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=2)["items"][0]["id"]
        with pytest.raises(InvalidQuantity):
            carts.update_item_quantity(buyer_id="buyer-1", item_id=item_id, quantity=0)

    def test_cannot_touch_another_buyers_item(self, carts, make_product):
        pid = make_product()
        item_id = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=2)["items"][0]["id"]
        with pytest.raises(CartItemNotFound):
            carts.update_item_quantity(buyer_id="buyer-2", item_id=item_id, quantity=1)
        with pytest.raises(CartItemNotFound):
            carts.remove_item(buyer_id="buyer-2", item_id=item_id)

    def test_remove_item(self, carts, make_product):
        a = make_product(name="Tomatoes")
        b = make_product(name="Peppers")
        carts.add_item(buyer_id="buyer-1", product_id=a, quantity=1)
        cart = carts.add_item(buyer_id="buyer-1", product_id=b, quantity=1)
        item_id = next(i["id"] for i in cart["items"] if i["product_id"] == a)

        cart = carts.remove_item(buyer_id="buyer-1", item_id=item_id)
        assert [i["product_id"] for i in cart["items"]] == [b]

    def test_clear(self, carts, make_product):
        pid = make_product()
        carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=1)
        carts.clear("buyer-1")
        assert carts.get_cart("buyer-1")["items"] == []

    def test_clear_without_cart_is_noop(self, carts):
        assert carts.clear("nobody") is None

    def test_stored_quantity_must_be_positive(self, db, carts, make_product):
        pid = make_product()
        item_id = carts.add_item(buyer_id="buyer-1", product_id=pid, quantity=1)["items"][0]["id"]
        with pytest.raises(PersistenceError):
            with db.session() as session:
                session.query(CartItem).filter_by(id=item_id).update({"quantity": 0}, synchronize_session=False)
        assert carts.get_cart("buyer-1")["items"][0]["quantity"] == 1
