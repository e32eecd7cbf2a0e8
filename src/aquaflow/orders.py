"""Order placement, the status state machine and order messaging."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable

from .areas import AreaRegistry
from .cart import Cart
from .entity_store import EntityStore
from .errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OrderNotFoundError,
    PartialFailureError,
    TerminalOrderError,
    ValidationError,
)
from .inventory import InventoryLedger
from .logger import setup_logger
from .models import (
    CENT,
    CUSTOMER,
    DELIVERED,
    ORDER_STATUSES,
    PENDING,
    VENDOR,
    Address,
    Order,
    OrderItem,
    OrderMessage,
    Session,
    User,
    _generate_id,
    _money,
    _utc_now,
    parse_timestamp,
)

logger = setup_logger(__name__)

# Statuses a vendor can pick; an order never returns to pending
STATUS_OPTIONS = tuple(s for s in ORDER_STATUSES if s != PENDING)


def parse_delivery_date(value: str) -> date:
    """Parse a YYYY-MM-DD delivery date (a full timestamp is accepted too)."""
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        raise ValidationError("delivery_date", f"expected YYYY-MM-DD, got {value!r}")


def _snapshot_items(cart_items: Cart | Iterable[OrderItem]) -> list[OrderItem]:
    if isinstance(cart_items, Cart):
        return cart_items.to_order_items()
    items = []
    for line in cart_items:
        try:
            price = _money(line.price)
        except (InvalidOperation, ValueError):
            raise ValidationError("price", f"not a number: {line.price!r}")
        try:
            quantity = int(line.quantity)
        except (TypeError, ValueError):
            raise ValidationError("quantity", f"not a whole number: {line.quantity!r}")
        items.append(OrderItem(id=line.id, name=line.name, price=price, quantity=quantity))
    return items


def available_order_months(orders: Iterable[Order]) -> list[tuple[int, int]]:
    """(year, month) pairs that have orders, by order date, newest first."""
    months = set()
    for order in orders:
        placed = parse_timestamp(order.order_date)
        months.add((placed.year, placed.month))
    return sorted(months, reverse=True)


class OrderLifecycle:
    """Creates orders and moves them through their statuses.

    pending -> acknowledged -> confirmed -> in-transit -> delivered is the
    usual path, with cancelled as the other way out. Vendors may skip ahead
    or step back among the open statuses; delivered and cancelled are final.
    Entering delivered takes the ordered quantities out of the vendor's stock.
    """

    def __init__(self, store: EntityStore, areas: AreaRegistry, ledger: InventoryLedger):
        self.store = store
        self.areas = areas
        self.ledger = ledger

    def build_cart(
        self, session: Session, address_id: str, lines: Iterable[tuple[str, int]]
    ) -> Cart:
        """
        Fill a cart from (item_id, quantity) pairs against the live catalog
        of the vendor serving the address.

        Raises:
            ValidationError: If an item isn't sold in the address's area, or a
                quantity is not positive or exceeds stock.
        """
        address = self.areas.get_address(session, address_id)
        vendor_id = self.areas.resolve_vendor_for_area(address.area_id)
        cart = Cart()
        for item_id, quantity in lines:
            item = self.ledger.get(item_id)
            if item.vendor_id != vendor_id:
                raise ValidationError("items", f"{item.name} is not sold in this area")
            if quantity <= 0:
                raise ValidationError("quantity", f"{item.name} needs at least one can")
            if not cart.set_quantity(item, cart.quantity(item.id) + quantity):
                raise ValidationError("quantity", f"only {item.stock} {item.name} in stock")
        return cart

    def place_order(
        self,
        session: Session,
        address_id: str,
        cart_items: Cart | Iterable[OrderItem],
        delivery_date: str,
        preferred_time: str,
    ) -> Order:
        """
        Turn a customer's cart into a pending order.

        The address, item prices, customer contact and owning vendor are copied
        onto the order so later edits to their sources don't change it.

        Raises:
            ForbiddenError: If the session isn't a customer, or the address is someone else's.
            ValidationError: On a missing address, empty cart, bad quantity,
                blank preferred time or malformed delivery date.
            NotFoundError: If the address or its service area no longer exists.
        """
        if not session.is_customer:
            raise ForbiddenError("Only customers can place orders")
        if not address_id:
            raise ValidationError("address_id", "please select an address")

        items = _snapshot_items(cart_items)
        if not items:
            raise ValidationError("cart", "please add items to cart")
        for item in items:
            if item.quantity <= 0:
                raise ValidationError("quantity", f"{item.name} needs at least one can")
            if not item.price.is_finite() or item.price <= 0:
                raise ValidationError("price", f"{item.name} has no valid price")
            if item.price != item.price.quantize(CENT):
                raise ValidationError("price", f"{item.name} is priced below a cent")
        if not preferred_time or not preferred_time.strip():
            raise ValidationError("preferred_time", "please enter your preferred delivery time")
        parse_delivery_date(delivery_date)

        address = self.store.get(Address, address_id)
        if address is None:
            raise NotFoundError("Address", address_id)
        if address.user_id != session.user_id:
            raise ForbiddenError("Address belongs to another customer")

        area = self.areas.get_area(address.area_id)

        customer = self.store.get(User, session.user_id)
        if customer is None:
            raise NotFoundError("User", session.user_id)

        order = Order(
            id=_generate_id(),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_phone=customer.phone or "",
            customer_user_id=customer.user_id,
            address=address,
            items=items,
            total=sum((i.line_total for i in items), Decimal("0")),
            vendor_id=area.vendor_id,
            vendor_name=area.vendor_name,
            area_id=area.id,
            delivery_date=delivery_date,
            preferred_time=preferred_time.strip(),
            status=PENDING,
            order_date=_utc_now(),
        )
        self.store.create(order)
        logger.info(
            "Order %s placed by %s with %s for %s",
            order.id, customer.user_id, area.vendor_name, order.total,
        )
        return order

    def get_order(self, order_id: str) -> Order:
        order = self.store.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def view_order(self, session: Session, order_id: str) -> Order:
        """Fetch an order for one of its two parties."""
        order = self.get_order(order_id)
        if session.user_id not in (order.customer_id, order.vendor_id):
            raise ForbiddenError("Order belongs to another account")
        return order

    def set_order_status(self, session: Session, order_id: str, new_status: str) -> Order:
        """
        Move an order to a new status on behalf of its vendor.

        Setting the current status again changes nothing. A PartialFailureError
        from the stock decrement on delivery is logged; the delivery stands.

        Raises:
            ValidationError: If new_status isn't a known status.
            ForbiddenError: If the session isn't the order's vendor.
            TerminalOrderError: If the order is already delivered or cancelled.
            InvalidTransitionError: If new_status is pending.
        """
        if new_status not in ORDER_STATUSES:
            raise ValidationError("status", f"unknown order status {new_status!r}")

        with self.store.transaction():
            order = self.get_order(order_id)
            if not session.is_vendor or order.vendor_id != session.user_id:
                raise ForbiddenError("Only the order's vendor can change its status")
            if new_status == order.status:
                return order
            if order.is_terminal:
                raise TerminalOrderError(order.id, order.status)
            if new_status not in STATUS_OPTIONS:
                raise InvalidTransitionError(order.status, new_status)

            updated = self.store.update(Order, order.id, {"status": new_status})
            logger.info("Order %s: %s -> %s", order.id, order.status, new_status)

            if new_status == DELIVERED:
                try:
                    self.ledger.decrement(
                        order.vendor_id, [(i.id, i.quantity) for i in order.items]
                    )
                except PartialFailureError as e:
                    logger.warning("Order %s delivered, but %s", order.id, e)

        return updated

    def append_message(self, session: Session, order_id: str, text: str) -> OrderMessage:
        """
        Add a note to an order's thread, from its customer or its vendor.

        Messages can be added in any status and are never edited or removed.
        """
        if not text or not text.strip():
            raise ValidationError("message", "message cannot be empty")

        with self.store.transaction():
            order = self.get_order(order_id)
            if session.user_id == order.customer_id:
                sender = CUSTOMER
            elif session.user_id == order.vendor_id:
                sender = VENDOR
            else:
                raise ForbiddenError("Only the order's customer or vendor can message on it")

            message = OrderMessage.create(
                order_id=order.id,
                sender=sender,
                sender_name=session.name or sender.title(),
                message=text.strip(),
            )
            messages = sorted(order.messages + [message], key=lambda m: m.timestamp)
            self.store.update(Order, order.id, {"messages": messages})
        return message

    def orders_for_customer(
        self, customer_id: str, year: int | None = None, month: int | None = None
    ) -> list[Order]:
        """A customer's orders, newest first, optionally limited to the month they were placed."""
        found = self.store.list(Order, customer_id=customer_id)
        if year is not None and month is not None:
            found = [
                o for o in found
                if (parse_timestamp(o.order_date).year, parse_timestamp(o.order_date).month)
                == (year, month)
            ]
        found.sort(key=lambda o: o.order_date, reverse=True)
        return found

    def orders_for_vendor(self, vendor_id: str, status: str | None = None) -> list[Order]:
        """A vendor's orders, newest first, optionally of one status."""
        if status is not None and status not in ORDER_STATUSES:
            raise ValidationError("status", f"unknown order status {status!r}")
        filters = {"vendor_id": vendor_id}
        if status is not None:
            filters["status"] = status
        found = self.store.list(Order, **filters)
        found.sort(key=lambda o: o.order_date, reverse=True)
        return found

    def status_counts(self, vendor_id: str) -> dict[str, int]:
        counts = {s: 0 for s in ORDER_STATUSES}
        for order in self.store.list(Order, vendor_id=vendor_id):
            counts[order.status] = counts.get(order.status, 0) + 1
        return counts
