"""Tests for the FastAPI API."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from aquaflow.errors import (
    AreaNameTakenError,
    InvalidCredentialsError,
    OrderNotFoundError,
    PartialFailureError,
    ValidationError,
)


@pytest.fixture
def api_client(market, monkeypatch):
    """Test client bound to the test marketplace."""
    from aquaflow import api

    monkeypatch.setattr(api, "get_marketplace", lambda: market)
    return TestClient(api.app)


def auth(session) -> dict[str, str]:
    return {"X-User-Id": session.user_id}


def order_body(market, customer, catalog, **overrides):
    address = market.areas.default_address(customer.user_id)
    body = {
        "address_id": address.id,
        "items": [
            {"item_id": catalog["Pure Water"].id, "quantity": 3},
            {"item_id": catalog["Spring Water"].id, "quantity": 2},
        ],
        "delivery_date": "2024-03-15",
        "preferred_time": "Morning",
    }
    body.update(overrides)
    return body


class TestErrorMapping:
    def test_status_codes_follow_taxonomy(self):
        from aquaflow.api import status_code_for

        assert status_code_for(ValidationError("x", "y")) == 400
        assert status_code_for(OrderNotFoundError("o1")) == 404
        assert status_code_for(AreaNameTakenError("Downtown")) == 409
        assert status_code_for(InvalidCredentialsError("bob")) == 403
        assert status_code_for(PartialFailureError("op", ["a"])) == 207


class TestHealthAndAreas:
    def test_health(self, api_client, area):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["area_count"] == 1

    def test_list_areas(self, api_client, area):
        response = api_client.get("/api/areas")
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["areas"][0]["name"] == "Downtown"

    def test_area_catalog(self, api_client, area):
        response = api_client.get(f"/api/areas/{area.id}/inventory")
        assert response.status_code == 200
        names = {i["name"] for i in response.json()["items"]}
        assert names == {"Pure Water", "Spring Water", "Alkaline Water"}

    def test_unknown_area_catalog(self, api_client):
        response = api_client.get("/api/areas/missing/inventory")
        assert response.status_code == 404
        assert response.json()["error_type"] == "NotFoundError"


class TestAuth:
    def test_register_vendor_and_login(self, api_client):
        response = api_client.post(
            "/api/auth/register/vendor",
            json={"user_id": "v1", "password": "pw", "name": "V One", "area_name": "Harbor"},
        )
        assert response.status_code == 201
        session = response.json()
        assert session["type"] == "vendor"

        response = api_client.post(
            "/api/auth/login", json={"user_id": "v1", "password": "pw", "user_type": "vendor"}
        )
        assert response.status_code == 200
        assert response.json()["user_id"] == session["user_id"]

    def test_register_customer(self, api_client, area):
        response = api_client.post(
            "/api/auth/register/customer",
            json={
                "user_id": "carol",
                "password": "pw",
                "name": "Carol",
                "area_id": area.id,
                "address": {"street": "5 Bay Rd"},
            },
        )
        assert response.status_code == 201
        headers = {"X-User-Id": response.json()["user_id"]}

        addresses = api_client.get("/api/addresses", headers=headers).json()
        assert addresses[0]["label"] == "Home"
        assert addresses[0]["street"] == "5 Bay Rd"

    def test_area_name_conflict(self, api_client, vendor):
        response = api_client.post(
            "/api/auth/register/vendor",
            json={"user_id": "v2", "password": "pw", "name": "V Two", "area_name": "downtown"},
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "AreaNameTakenError"

    def test_bad_login(self, api_client, customer):
        response = api_client.post(
            "/api/auth/login", json={"user_id": "alice", "password": "pw", "user_type": "vendor"}
        )
        assert response.status_code == 403

    def test_missing_header(self, api_client):
        assert api_client.get("/api/me").status_code == 401

    def test_unknown_user_header(self, api_client):
        assert api_client.get("/api/me", headers={"X-User-Id": "ghost"}).status_code == 401

    def test_profile(self, api_client, vendor, area):
        response = api_client.patch("/api/me", json={"name": "Renamed"}, headers=auth(vendor))
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert "password_hash" not in response.json()

        areas = api_client.get("/api/areas").json()["areas"]
        assert areas[0]["vendor_name"] == "Renamed"

    def test_delete_account(self, api_client, customer):
        response = api_client.delete("/api/me", headers=auth(customer))
        assert response.status_code == 204
        assert api_client.get("/api/me", headers=auth(customer)).status_code == 401


class TestAddresses:
    def test_add_and_set_default(self, api_client, customer, area):
        response = api_client.post(
            "/api/addresses",
            json={"area_id": area.id, "label": "Office", "street": "9 Elm"},
            headers=auth(customer),
        )
        assert response.status_code == 201
        office = response.json()
        assert office["is_default"] is False

        response = api_client.post(f"/api/addresses/{office['id']}/default", headers=auth(customer))
        assert response.json()["is_default"] is True

        labels = [a["label"] for a in api_client.get("/api/addresses", headers=auth(customer)).json()]
        assert labels == ["Office", "Home"]

    def test_vendor_has_no_address_book(self, api_client, vendor):
        assert api_client.get("/api/addresses", headers=auth(vendor)).status_code == 403


class TestInventory:
    def test_list_and_low_stock(self, api_client, vendor):
        data = api_client.get("/api/inventory", headers=auth(vendor)).json()
        assert data["count"] == 3

        low = api_client.get("/api/inventory/low-stock", headers=auth(vendor)).json()
        assert {i["name"] for i in low["items"]} == {"Spring Water", "Alkaline Water"}
        assert {i["stock_level"] for i in low["items"]} == {"low"}

    def test_add_update_delete(self, api_client, vendor):
        response = api_client.post(
            "/api/inventory",
            json={"name": "Mineral Water", "price": "70", "stock": 12},
            headers=auth(vendor),
        )
        assert response.status_code == 201
        item_id = response.json()["id"]

        response = api_client.put(
            f"/api/inventory/{item_id}",
            json={"name": "Mineral Water", "price": "72.5", "stock": 40},
            headers=auth(vendor),
        )
        assert response.status_code == 200
        assert Decimal(response.json()["price"]) == Decimal("72.5")

        assert api_client.delete(f"/api/inventory/{item_id}", headers=auth(vendor)).status_code == 204

    def test_invalid_price(self, api_client, vendor):
        response = api_client.post(
            "/api/inventory", json={"name": "Free Water", "price": "0", "stock": 1}, headers=auth(vendor)
        )
        assert response.status_code == 400

    def test_customer_forbidden(self, api_client, customer):
        assert api_client.get("/api/inventory", headers=auth(customer)).status_code == 403


class TestOrdersFlow:
    def test_place_and_fulfil(self, api_client, market, vendor, customer, catalog):
        response = api_client.post(
            "/api/orders", json=order_body(market, customer, catalog), headers=auth(customer)
        )
        assert response.status_code == 201
        order = response.json()
        assert Decimal(order["total"]) == Decimal("245")
        assert order["status"] == "pending"

        response = api_client.patch(
            f"/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=auth(vendor)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "delivered"
        assert market.inventory.get(catalog["Pure Water"].id).stock == 47

        response = api_client.patch(
            f"/api/orders/{order['id']}/status", json={"status": "cancelled"}, headers=auth(vendor)
        )
        assert response.status_code == 409

    def test_prices_come_from_catalog(self, api_client, market, customer, catalog):
        body = order_body(market, customer, catalog)
        body["items"][0]["price"] = "1"
        order = api_client.post("/api/orders", json=body, headers=auth(customer)).json()

        assert Decimal(order["items"][0]["price"]) == Decimal("45")

    def test_empty_cart(self, api_client, market, customer, catalog):
        response = api_client.post(
            "/api/orders", json=order_body(market, customer, catalog, items=[]), headers=auth(customer)
        )
        assert response.status_code == 400

    def test_over_stock(self, api_client, market, customer, catalog):
        body = order_body(
            market, customer, catalog,
            items=[{"item_id": catalog["Alkaline Water"].id, "quantity": 26}],
        )
        response = api_client.post("/api/orders", json=body, headers=auth(customer))
        assert response.status_code == 400

    def test_list_and_messages(self, api_client, market, vendor, customer, catalog):
        order = api_client.post(
            "/api/orders", json=order_body(market, customer, catalog), headers=auth(customer)
        ).json()

        response = api_client.post(
            f"/api/orders/{order['id']}/messages", json={"message": "Gate code 1234"}, headers=auth(customer)
        )
        assert response.status_code == 201

        vendor_view = api_client.get("/api/orders?status=pending", headers=auth(vendor)).json()
        assert vendor_view["count"] == 1
        assert vendor_view["orders"][0]["messages"][0]["message"] == "Gate code 1234"

        customer_view = api_client.get(f"/api/orders/{order['id']}", headers=auth(customer)).json()
        assert customer_view["id"] == order["id"]

        counts = api_client.get("/api/orders/status-counts", headers=auth(vendor)).json()
        assert counts["pending"] == 1

    def test_missing_order(self, api_client, vendor):
        response = api_client.get("/api/orders/missing", headers=auth(vendor))
        assert response.status_code == 404
        assert response.json()["error_type"] == "OrderNotFoundError"


class TestInvoicesAndReports:
    def test_invoice_flow(self, api_client, market, vendor, customer, catalog):
        order = api_client.post(
            "/api/orders", json=order_body(market, customer, catalog), headers=auth(customer)
        ).json()
        api_client.patch(f"/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=auth(vendor))

        response = api_client.post(f"/api/orders/{order['id']}/invoice", headers=auth(vendor))
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["status"] == "draft"

        again = api_client.post(f"/api/orders/{order['id']}/invoice", headers=auth(vendor))
        assert again.status_code == 409
        assert again.json()["error_type"] == "InvoiceExistsError"

        response = api_client.patch(
            f"/api/invoices/{invoice['id']}", json={"status": "paid"}, headers=auth(vendor)
        )
        assert response.json()["status"] == "paid"
        assert api_client.get("/api/invoices", headers=auth(vendor)).json()["count"] == 1

    def test_reports(self, api_client, market, vendor, customer, catalog):
        order = api_client.post(
            "/api/orders", json=order_body(market, customer, catalog), headers=auth(customer)
        ).json()
        api_client.patch(f"/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=auth(vendor))

        monthly = api_client.get("/api/reports/monthly?year=2024&month=3", headers=auth(vendor)).json()
        assert monthly["total_orders"] == 1
        assert Decimal(monthly["total_revenue"]) == Decimal("245")
        assert monthly["per_customer"][customer.user_id]["name"] == "Alice"

        yearly = api_client.get("/api/reports/yearly?year=2024", headers=auth(vendor)).json()
        assert [m["month"] for m in yearly["months"]] == [3]
        assert yearly["total_orders"] == 1

        months = api_client.get("/api/reports/months", headers=auth(vendor)).json()
        assert months["months"] == ["2024-03"]

    def test_customer_cannot_see_reports(self, api_client, customer):
        response = api_client.get("/api/reports/monthly?year=2024&month=3", headers=auth(customer))
        assert response.status_code == 403
