"""Wires the marketplace services over one entity store."""

from .accounts import Accounts
from .areas import AreaRegistry
from .config import Settings, create_store, get_settings
from .entity_store import EntityStore
from .inventory import InventoryLedger
from .invoices import InvoiceDesk
from .models import Invoice, MonthlyReport, Order, OrderMessage, Session
from .orders import OrderLifecycle
from .reports import ReportBuilder


class Marketplace:
    """Entry point used by the API and the CLI.

    The services are attributes; the cross-module operations are
    re-exported as methods.
    """

    def __init__(self, store: EntityStore, settings: Settings | None = None):
        settings = settings or get_settings()
        self.store = store
        self.settings = settings
        self.areas = AreaRegistry(store)
        self.inventory = InventoryLedger(store, settings.low_stock_threshold)
        self.accounts = Accounts(store, self.areas, self.inventory, settings)
        self.orders = OrderLifecycle(store, self.areas, self.inventory)
        self.invoices = InvoiceDesk(store, settings.invoice_due_days)
        self.reports = ReportBuilder(store)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Marketplace":
        settings = settings or get_settings()
        return cls(create_store(settings), settings)

    def place_order(self, session: Session, address_id, cart_items, delivery_date, preferred_time) -> Order:
        return self.orders.place_order(session, address_id, cart_items, delivery_date, preferred_time)

    def set_order_status(self, session: Session, order_id: str, new_status: str) -> Order:
        return self.orders.set_order_status(session, order_id, new_status)

    def append_message(self, session: Session, order_id: str, text: str) -> OrderMessage:
        return self.orders.append_message(session, order_id, text)

    def generate_invoice(self, session: Session, order_id: str) -> Invoice:
        return self.invoices.generate_invoice(session, order_id)

    def update_invoice_status(self, session: Session, invoice_id: str, status: str) -> Invoice:
        return self.invoices.update_invoice_status(session, invoice_id, status)

    def monthly_report(self, vendor_id: str, year: int, month: int) -> MonthlyReport:
        return self.reports.monthly_report(vendor_id, year, month)

    def yearly_report(self, vendor_id: str, year: int) -> list[MonthlyReport]:
        return self.reports.yearly_report(vendor_id, year)
