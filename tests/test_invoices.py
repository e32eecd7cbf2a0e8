"""Tests for invoice generation."""

from datetime import timedelta

import pytest

from aquaflow.errors import (
    ConflictError,
    ForbiddenError,
    InvoiceExistsError,
    NotFoundError,
    ValidationError,
)
from aquaflow.models import CANCELLED, DELIVERED, DRAFT, PAID, SENT, parse_timestamp

from .conftest import place


class TestGenerateInvoice:
    def test_generate(self, market, vendor, customer, catalog):
        order = place(market, customer, [(catalog["Pure Water"], 3), (catalog["Spring Water"], 2)])
        market.set_order_status(vendor, order.id, DELIVERED)

        invoice = market.generate_invoice(vendor, order.id)

        assert invoice.id.startswith("INV-")
        assert invoice.order_id == order.id
        assert invoice.amount == order.total
        assert invoice.status == DRAFT
        assert market.orders.get_order(order.id).invoice_id == invoice.id

    def test_due_in_thirty_days(self, market, vendor, customer, catalog):
        order = place(market, customer, [(catalog["Pure Water"], 1)])

        invoice = market.generate_invoice(vendor, order.id)

        generated = parse_timestamp(invoice.generated_date)
        due = parse_timestamp(invoice.due_date)
        assert due - generated == timedelta(days=30)

    def test_due_days_from_settings(self, store, settings, vendor, customer, catalog):
        from aquaflow.marketplace import Marketplace

        settings.invoice_due_days = 7
        market = Marketplace(store, settings)
        order = place(market, customer, [(catalog["Pure Water"], 1)])

        invoice = market.generate_invoice(vendor, order.id)
        assert parse_timestamp(invoice.due_date) - parse_timestamp(invoice.generated_date) == timedelta(days=7)

    def test_second_invoice_rejected(self, market, vendor, customer, catalog):
        order = place(market, customer, [(catalog["Pure Water"], 1)])
        first = market.generate_invoice(vendor, order.id)

        with pytest.raises(InvoiceExistsError) as exc_info:
            market.generate_invoice(vendor, order.id)
        assert exc_info.value.invoice_id == first.id
        assert len(market.invoices.invoices_for_vendor(vendor.user_id)) == 1

    def test_cancelled_order_not_invoiced(self, market, vendor, customer, catalog):
        order = place(market, customer, [(catalog["Pure Water"], 1)])
        market.set_order_status(vendor, order.id, CANCELLED)

        with pytest.raises(ConflictError):
            market.generate_invoice(vendor, order.id)

    def test_only_owning_vendor(self, market, vendor, customer, catalog):
        order = place(market, customer, [(catalog["Pure Water"], 1)])

        with pytest.raises(ForbiddenError):
            market.generate_invoice(customer, order.id)

    def test_missing_order(self, market, vendor):
        with pytest.raises(NotFoundError):
            market.generate_invoice(vendor, "missing")


class TestInvoiceStatus:
    def test_status_is_unordered(self, market, vendor, customer, catalog):
        order = place(market, customer, [(catalog["Pure Water"], 1)])
        invoice = market.generate_invoice(vendor, order.id)

        assert market.update_invoice_status(vendor, invoice.id, PAID).status == PAID
        assert market.update_invoice_status(vendor, invoice.id, SENT).status == SENT
        assert market.invoices.get_invoice(invoice.id).status == SENT

    def test_unknown_status(self, market, vendor, customer, catalog):
        order = place(market, customer, [(catalog["Pure Water"], 1)])
        invoice = market.generate_invoice(vendor, order.id)

        with pytest.raises(ValidationError):
            market.update_invoice_status(vendor, invoice.id, "void")

    def test_missing_invoice(self, market, vendor):
        with pytest.raises(NotFoundError):
            market.update_invoice_status(vendor, "INV-NOPE", PAID)
