"""Tests for monthly and yearly revenue reports."""

from decimal import Decimal

import pytest

from aquaflow.errors import ValidationError
from aquaflow.models import DELIVERED, Order

from .conftest import place


def deliver(market, vendor, customer, lines, delivery_date):
    order = place(market, customer, lines, delivery_date=delivery_date)
    return market.set_order_status(vendor, order.id, DELIVERED)


class TestMonthlyReport:
    def test_counts_delivered_orders_by_delivery_month(self, market, vendor, customer, area, catalog):
        pure, spring = catalog["Pure Water"], catalog["Spring Water"]
        bob = market.accounts.register_customer("bob", "pw", "Bob", None, area.id)

        deliver(market, vendor, customer, [(pure, 3), (spring, 2)], "2024-03-15")
        deliver(market, vendor, customer, [(pure, 1)], "2024-03-20")
        deliver(market, vendor, bob, [(spring, 1)], "2024-03-02")
        deliver(market, vendor, customer, [(pure, 1)], "2024-04-01")
        # placed but never delivered
        place(market, customer, [(pure, 4)], delivery_date="2024-03-10")

        report = market.monthly_report(vendor.user_id, 2024, 3)

        assert report.month_name == "March"
        assert report.total_orders == 3
        assert report.total_revenue == Decimal("345")
        assert report.per_customer[customer.user_id].name == "Alice"
        assert report.per_customer[customer.user_id].orders == 2
        assert report.per_customer[customer.user_id].amount == Decimal("290")
        assert report.per_customer[bob.user_id].amount == Decimal("55")

    def test_empty_month(self, market, vendor):
        report = market.monthly_report(vendor.user_id, 2024, 1)

        assert report.total_orders == 0
        assert report.total_revenue == Decimal("0")
        assert report.per_customer == {}

    def test_uses_snapshot_customer_name(self, market, vendor, customer, catalog):
        deliver(market, vendor, customer, [(catalog["Pure Water"], 1)], "2024-03-15")
        market.accounts.update_profile(customer, name="Alicia")

        report = market.monthly_report(vendor.user_id, 2024, 3)
        assert report.per_customer[customer.user_id].name == "Alice"

    def test_unparseable_delivery_date_skipped(self, market, vendor, customer, store, catalog):
        good = deliver(market, vendor, customer, [(catalog["Pure Water"], 1)], "2024-03-15")
        bad = deliver(market, vendor, customer, [(catalog["Pure Water"], 1)], "2024-03-16")
        store.update(Order, bad.id, {"delivery_date": "someday"})

        report = market.monthly_report(vendor.user_id, 2024, 3)
        assert report.total_orders == 1
        assert report.total_revenue == good.total

    def test_invalid_month(self, market, vendor):
        with pytest.raises(ValidationError):
            market.monthly_report(vendor.user_id, 2024, 13)

    def test_to_dict(self, market, vendor, customer, catalog):
        deliver(market, vendor, customer, [(catalog["Pure Water"], 2)], "2024-03-15")

        data = market.monthly_report(vendor.user_id, 2024, 3).to_dict()
        assert data["total_orders"] == 1
        assert Decimal(data["total_revenue"]) == Decimal("90")
        assert data["per_customer"][customer.user_id]["orders"] == 1


class TestYearlyReport:
    def test_months_with_deliveries_newest_first(self, market, vendor, customer, catalog):
        pure = catalog["Pure Water"]
        deliver(market, vendor, customer, [(pure, 1)], "2024-01-05")
        deliver(market, vendor, customer, [(pure, 2)], "2024-06-05")
        deliver(market, vendor, customer, [(pure, 1)], "2023-12-31")

        reports = market.yearly_report(vendor.user_id, 2024)

        assert [r.month for r in reports] == [6, 1]
        totals = market.reports.yearly_totals(reports)
        assert totals["total_orders"] == 2
        assert totals["total_revenue"] == Decimal("135")

    def test_available_report_months(self, market, vendor, customer, catalog):
        pure = catalog["Pure Water"]
        deliver(market, vendor, customer, [(pure, 1)], "2024-01-05")
        deliver(market, vendor, customer, [(pure, 1)], "2023-12-31")
        place(market, customer, [(pure, 1)], delivery_date="2025-02-01")

        assert market.reports.available_report_months(vendor.user_id) == [(2024, 1), (2023, 12)]

    def test_other_vendor_not_counted(self, market, vendor, customer, catalog):
        deliver(market, vendor, customer, [(catalog["Pure Water"], 1)], "2024-03-15")
        rival = market.accounts.register_vendor("rival", "pw", "Rival", None, "Uptown")

        assert market.yearly_report(rival.user_id, 2024) == []
