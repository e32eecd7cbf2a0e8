"""Tests for the customer cart."""

from decimal import Decimal

from aquaflow.cart import Cart
from aquaflow.models import InventoryItem


def item(name="Pure Water", price="45", stock=3) -> InventoryItem:
    return InventoryItem.create(vendor_id="v1", name=name, price=price, stock=stock)


class TestCart:
    def test_add_increments(self):
        cart = Cart()
        water = item()

        assert cart.add(water)
        assert cart.add(water)
        assert cart.quantity(water.id) == 2
        assert len(cart) == 1

    def test_add_stops_at_stock(self):
        cart = Cart()
        water = item(stock=2)

        assert cart.add(water)
        assert cart.add(water)
        assert not cart.add(water)
        assert cart.quantity(water.id) == 2

    def test_out_of_stock_refused(self):
        cart = Cart()
        assert not cart.add(item(stock=0))
        assert cart.is_empty()

    def test_set_quantity(self):
        cart = Cart()
        water = item(stock=5)

        assert cart.set_quantity(water, 4)
        assert cart.quantity(water.id) == 4
        assert not cart.set_quantity(water, 6)
        assert cart.quantity(water.id) == 4

    def test_set_quantity_zero_removes(self):
        cart = Cart()
        water = item()
        cart.add(water)

        cart.set_quantity(water, 0)
        assert cart.is_empty()

    def test_total(self):
        cart = Cart()
        cart.set_quantity(item("Pure Water", "45", 10), 3)
        cart.set_quantity(item("Spring Water", "55", 10), 2)

        assert cart.total == Decimal("245")

    def test_order_items_are_copies(self):
        cart = Cart()
        water = item()
        cart.add(water)

        lines = cart.to_order_items()
        lines[0].quantity = 99

        assert cart.quantity(water.id) == 1

    def test_clear_and_remove(self):
        cart = Cart()
        a, b = item("A"), item("B")
        cart.add(a)
        cart.add(b)

        cart.remove(a.id)
        assert cart.quantity(a.id) == 0
        cart.clear()
        assert cart.is_empty()
