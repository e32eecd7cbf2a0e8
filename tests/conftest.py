"""Pytest fixtures for aquaflow tests."""

import tempfile
from pathlib import Path

import pytest

from aquaflow.config import Settings
from aquaflow.json_store import JsonEntityStore
from aquaflow.marketplace import Marketplace
from aquaflow.sql_store import SqlEntityStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def json_store(temp_dir):
    return JsonEntityStore(temp_dir / "data")


@pytest.fixture
def sql_store(temp_dir):
    store = SqlEntityStore(f"sqlite:///{temp_dir / 'aquaflow.db'}")
    yield store
    store.engine.dispose()


@pytest.fixture(params=["json", "sql"])
def store(request, temp_dir):
    """Each test using this fixture runs once per storage backend."""
    if request.param == "json":
        yield JsonEntityStore(temp_dir / "data")
    else:
        sql = SqlEntityStore(f"sqlite:///{temp_dir / 'aquaflow.db'}")
        yield sql
        sql.engine.dispose()


@pytest.fixture
def settings(temp_dir):
    return Settings(data_dir=temp_dir / "data", seed_default_catalog=True)


@pytest.fixture
def market(store, settings):
    """Marketplace over the parametrized store."""
    return Marketplace(store, settings)


@pytest.fixture
def vendor(market):
    """Vendor 'freshflow' serving Downtown, with the starter catalog."""
    return market.accounts.register_vendor(
        user_id="freshflow",
        password="secret",
        name="Fresh Flow Water",
        phone="555-0100",
        area_name="Downtown",
    )


@pytest.fixture
def area(market, vendor):
    return market.areas.area_for_vendor(vendor.user_id)


@pytest.fixture
def customer(market, area):
    """Customer 'alice' living in the vendor's area."""
    return market.accounts.register_customer(
        user_id="alice",
        password="pw",
        name="Alice",
        phone="555-0199",
        area_id=area.id,
        address={"street": "1 Main St", "city": "Springfield", "state": "IL", "zip_code": "62701"},
    )


@pytest.fixture
def catalog(market, vendor):
    """The vendor's items keyed by name."""
    return {item.name: item for item in market.inventory.list(vendor.user_id)}


def place(market, customer, lines, delivery_date="2024-03-15", preferred_time="Morning"):
    """Place an order for (item, quantity) pairs at the customer's default address."""
    address = market.areas.default_address(customer.user_id)
    cart = market.orders.build_cart(
        customer, address.id, [(item.id, qty) for item, qty in lines]
    )
    return market.place_order(customer, address.id, cart, delivery_date, preferred_time)
