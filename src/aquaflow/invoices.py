"""Invoice generation and tracking."""

from datetime import timedelta
import uuid

from .entity_store import EntityStore
from .errors import ConflictError, ForbiddenError, InvoiceExistsError, NotFoundError, ValidationError
from .logger import setup_logger
from .models import CANCELLED, INVOICE_STATUSES, DRAFT, Invoice, Order, Session, _utc_now, parse_timestamp

logger = setup_logger(__name__)

INVOICE_DUE_DAYS = 30


def _invoice_id() -> str:
    return f"INV-{uuid.uuid4().hex[:12].upper()}"


class InvoiceDesk:
    """One invoice per order, issued by the order's vendor."""

    def __init__(self, store: EntityStore, due_days: int = INVOICE_DUE_DAYS):
        self.store = store
        self.due_days = due_days

    def _vendor_order(self, session: Session, order_id: str) -> Order:
        order = self.store.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if not session.is_vendor or order.vendor_id != session.user_id:
            raise ForbiddenError("Only the order's vendor can invoice it")
        return order

    def generate_invoice(self, session: Session, order_id: str) -> Invoice:
        """
        Issue a draft invoice for an order and link it from the order.

        The amount is the order's frozen total and payment is due a fixed
        number of days after issue.

        Raises:
            NotFoundError: If the order doesn't exist.
            ForbiddenError: If the session isn't the order's vendor.
            InvoiceExistsError: If the order was already invoiced.
            ConflictError: If the order was cancelled.
        """
        with self.store.transaction():
            order = self._vendor_order(session, order_id)
            if order.invoice_id:
                raise InvoiceExistsError(order.id, order.invoice_id)
            if order.status == CANCELLED:
                raise ConflictError(f"Order {order.id} is cancelled and cannot be invoiced")

            generated = _utc_now()
            due = parse_timestamp(generated) + timedelta(days=self.due_days)
            invoice = Invoice(
                id=_invoice_id(),
                order_id=order.id,
                amount=order.total,
                generated_date=generated,
                due_date=due.isoformat().replace("+00:00", "Z"),
                status=DRAFT,
            )
            self.store.create(invoice)
            self.store.update(Order, order.id, {"invoice_id": invoice.id})

        logger.info("Generated invoice %s for order %s (%s)", invoice.id, order.id, invoice.amount)
        return invoice

    def get_invoice(self, invoice_id: str) -> Invoice:
        invoice = self.store.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def update_invoice_status(self, session: Session, invoice_id: str, status: str) -> Invoice:
        """Set draft, sent or paid; any of them may follow any other."""
        if status not in INVOICE_STATUSES:
            raise ValidationError("status", f"must be one of {', '.join(INVOICE_STATUSES)}")
        invoice = self.get_invoice(invoice_id)
        self._vendor_order(session, invoice.order_id)
        if invoice.status == status:
            return invoice
        updated = self.store.update(Invoice, invoice.id, {"status": status})
        logger.info("Invoice %s: %s -> %s", invoice.id, invoice.status, status)
        return updated

    def invoices_for_vendor(self, vendor_id: str) -> list[Invoice]:
        """Invoices for a vendor's orders, newest first."""
        order_ids = {o.id for o in self.store.list(Order, vendor_id=vendor_id)}
        found = [i for i in self.store.list(Invoice) if i.order_id in order_ids]
        found.sort(key=lambda i: i.generated_date, reverse=True)
        return found
