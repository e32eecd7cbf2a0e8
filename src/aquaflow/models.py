"""Data models for aquaflow."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar
import uuid

CUSTOMER = "customer"
VENDOR = "vendor"
USER_TYPES = (CUSTOMER, VENDOR)

PENDING = "pending"
ACKNOWLEDGED = "acknowledged"
CONFIRMED = "confirmed"
IN_TRANSIT = "in-transit"
DELIVERED = "delivered"
CANCELLED = "cancelled"
ORDER_STATUSES = (PENDING, ACKNOWLEDGED, CONFIRMED, IN_TRANSIT, DELIVERED, CANCELLED)
TERMINAL_STATUSES = frozenset({DELIVERED, CANCELLED})

DRAFT = "draft"
SENT = "sent"
PAID = "paid"
INVOICE_STATUSES = (DRAFT, SENT, PAID)

# Smallest amount a price or total can carry
CENT = Decimal("0.01")


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new record ID."""
    return str(uuid.uuid4())


def _money(value: Any) -> Decimal:
    """Coerce a stored or user-supplied amount to Decimal."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp written by _utc_now (or a plain date)."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class User:
    """A customer or vendor account."""

    collection: ClassVar[str] = "users"
    unique_fields: ClassVar[tuple[str, ...]] = ("user_id",)

    id: str
    user_id: str  # human-chosen login, used in place of email
    name: str
    type: str  # "customer" | "vendor"
    phone: str | None = None
    area_id: str | None = None  # customers: area picked at registration
    service_area: str | None = None  # vendors: name of the area they serve
    password_hash: str | None = None
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    @property
    def is_vendor(self) -> bool:
        return self.type == VENDOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "type": self.type,
            "phone": self.phone,
            "area_id": self.area_id,
            "service_area": self.service_area,
            "password_hash": self.password_hash,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            name=data["name"],
            type=data["type"],
            phone=data.get("phone"),
            area_id=data.get("area_id"),
            service_area=data.get("service_area"),
            password_hash=data.get("password_hash"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create(
        cls,
        user_id: str,
        name: str,
        type: str,
        phone: str | None = None,
        area_id: str | None = None,
        service_area: str | None = None,
        password_hash: str | None = None,
    ) -> "User":
        """Create a new user with generated ID and timestamps."""
        now = _utc_now()
        return cls(
            id=_generate_id(),
            user_id=user_id,
            name=name,
            type=type,
            phone=phone,
            area_id=area_id,
            service_area=service_area,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )


@dataclass
class ServiceArea:
    """A named delivery zone owned by exactly one vendor."""

    collection: ClassVar[str] = "service_areas"
    unique_fields: ClassVar[tuple[str, ...]] = ()

    id: str
    name: str
    vendor_id: str
    vendor_name: str  # snapshot of the owner's name, refreshed on rename
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceArea":
        return cls(
            id=data["id"],
            name=data["name"],
            vendor_id=data["vendor_id"],
            vendor_name=data.get("vendor_name", ""),
            created_at=data.get("created_at", ""),
        )

    @classmethod
    def create(cls, name: str, vendor_id: str, vendor_name: str) -> "ServiceArea":
        return cls(
            id=_generate_id(),
            name=name,
            vendor_id=vendor_id,
            vendor_name=vendor_name,
            created_at=_utc_now(),
        )


@dataclass
class Address:
    """A customer's delivery address, resolved through one service area."""

    collection: ClassVar[str] = "addresses"
    unique_fields: ClassVar[tuple[str, ...]] = ()

    id: str
    user_id: str  # owning customer's internal id
    label: str
    street: str
    city: str
    state: str
    zip_code: str
    area_id: str
    is_default: bool = False
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "label": self.label,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "area_id": self.area_id,
            "is_default": self.is_default,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Address":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            label=data.get("label", ""),
            street=data.get("street", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip_code=data.get("zip_code", ""),
            area_id=data.get("area_id", ""),
            is_default=bool(data.get("is_default", False)),
            created_at=data.get("created_at", ""),
        )

    @classmethod
    def create(
        cls,
        user_id: str,
        area_id: str,
        label: str = "Home",
        street: str = "",
        city: str = "",
        state: str = "",
        zip_code: str = "",
        is_default: bool = False,
    ) -> "Address":
        return cls(
            id=_generate_id(),
            user_id=user_id,
            label=label,
            street=street,
            city=city,
            state=state,
            zip_code=zip_code,
            area_id=area_id,
            is_default=is_default,
            created_at=_utc_now(),
        )


@dataclass
class InventoryItem:
    """A sellable product in one vendor's catalog."""

    collection: ClassVar[str] = "inventory_items"
    unique_fields: ClassVar[tuple[str, ...]] = ()

    id: str
    vendor_id: str
    name: str
    price: Decimal
    stock: int  # sellable cans
    description: str = ""
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def is_low_stock(self, threshold: int = 50) -> bool:
        return self.stock < threshold

    @property
    def stock_level(self) -> str:
        """Display band used by the vendor inventory screen."""
        if self.stock >= 50:
            return "good"
        if self.stock > 10:
            return "low"
        return "critical"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "name": self.name,
            "price": str(self.price),
            "stock": self.stock,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InventoryItem":
        return cls(
            id=data["id"],
            vendor_id=data["vendor_id"],
            name=data["name"],
            price=_money(data["price"]),
            stock=int(data["stock"]),
            description=data.get("description") or "",
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create(
        cls,
        vendor_id: str,
        name: str,
        price: Decimal | int | str,
        stock: int,
        description: str = "",
    ) -> "InventoryItem":
        now = _utc_now()
        return cls(
            id=_generate_id(),
            vendor_id=vendor_id,
            name=name,
            price=_money(price),
            stock=stock,
            description=description,
            created_at=now,
            updated_at=now,
        )


@dataclass
class OrderItem:
    """Frozen copy of an inventory line at order time."""

    id: str  # inventory item id
    name: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            id=data["id"],
            name=data["name"],
            price=_money(data["price"]),
            quantity=int(data["quantity"]),
        )


@dataclass
class OrderMessage:
    """A note exchanged between customer and vendor on an order."""

    id: str
    order_id: str
    sender: str  # "customer" | "vendor"
    sender_name: str
    message: str
    timestamp: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "sender": self.sender,
            "sender_name": self.sender_name,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderMessage":
        return cls(
            id=data["id"],
            order_id=data.get("order_id", ""),
            sender=data["sender"],
            sender_name=data.get("sender_name", ""),
            message=data["message"],
            timestamp=data.get("timestamp", ""),
        )

    @classmethod
    def create(cls, order_id: str, sender: str, sender_name: str, message: str) -> "OrderMessage":
        return cls(
            id=_generate_id(),
            order_id=order_id,
            sender=sender,
            sender_name=sender_name,
            message=message,
            timestamp=_utc_now(),
        )


@dataclass
class Order:
    """A customer's order, owned by the vendor of the address's area.

    Everything except status, invoice_id and messages is a snapshot taken at
    creation and never changes afterwards.
    """

    collection: ClassVar[str] = "orders"
    unique_fields: ClassVar[tuple[str, ...]] = ()

    id: str
    customer_id: str
    customer_name: str
    customer_phone: str
    customer_user_id: str
    address: Address
    items: list[OrderItem]
    total: Decimal
    vendor_id: str
    vendor_name: str
    area_id: str
    delivery_date: str  # YYYY-MM-DD
    preferred_time: str
    status: str = PENDING
    order_date: str = field(default_factory=_utc_now)
    invoice_id: str | None = None
    messages: list[OrderMessage] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_user_id": self.customer_user_id,
            "address": self.address.to_dict(),
            "items": [i.to_dict() for i in self.items],
            "total": str(self.total),
            "status": self.status,
            "order_date": self.order_date,
            "delivery_date": self.delivery_date,
            "preferred_time": self.preferred_time,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "area_id": self.area_id,
            "invoice_id": self.invoice_id,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            customer_id=data["customer_id"],
            customer_name=data.get("customer_name", ""),
            customer_phone=data.get("customer_phone") or "",
            customer_user_id=data.get("customer_user_id", ""),
            address=Address.from_dict(data["address"]),
            items=[OrderItem.from_dict(i) for i in data.get("items", [])],
            total=_money(data["total"]),
            status=data.get("status", PENDING),
            order_date=data.get("order_date", ""),
            delivery_date=data.get("delivery_date", ""),
            preferred_time=data.get("preferred_time", ""),
            vendor_id=data["vendor_id"],
            vendor_name=data.get("vendor_name", ""),
            area_id=data.get("area_id", ""),
            invoice_id=data.get("invoice_id"),
            messages=[OrderMessage.from_dict(m) for m in data.get("messages") or []],
        )


@dataclass
class Invoice:
    """Bill derived from exactly one order."""

    collection: ClassVar[str] = "invoices"
    unique_fields: ClassVar[tuple[str, ...]] = ("order_id",)

    id: str
    order_id: str
    amount: Decimal
    generated_date: str
    due_date: str
    status: str = DRAFT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "amount": str(self.amount),
            "generated_date": self.generated_date,
            "due_date": self.due_date,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Invoice":
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            amount=_money(data["amount"]),
            generated_date=data["generated_date"],
            due_date=data["due_date"],
            status=data.get("status", DRAFT),
        )


# Every persisted model, in dependency order
ENTITY_MODELS: tuple[type, ...] = (User, ServiceArea, Address, InventoryItem, Order, Invoice)


# Models for reporting


@dataclass
class CustomerTotals:
    """One customer's slice of a monthly report."""

    name: str  # customer name as captured on the orders
    orders: int = 0
    amount: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "orders": self.orders, "amount": str(self.amount)}


@dataclass
class MonthlyReport:
    """Delivered-order revenue for one vendor in one calendar month."""

    year: int
    month: int  # 1-12
    month_name: str
    total_orders: int = 0
    total_revenue: Decimal = Decimal("0")
    per_customer: dict[str, CustomerTotals] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "month_name": self.month_name,
            "total_orders": self.total_orders,
            "total_revenue": str(self.total_revenue),
            "per_customer": {k: v.to_dict() for k, v in self.per_customer.items()},
        }


# Identity


@dataclass(frozen=True)
class Session:
    """Identity of the acting user, supplied explicitly to every core call."""

    user_id: str  # internal id
    login: str  # human-chosen user_id
    name: str
    type: str

    @property
    def is_vendor(self) -> bool:
        return self.type == VENDOR

    @property
    def is_customer(self) -> bool:
        return self.type == CUSTOMER

    @classmethod
    def for_user(cls, user: User) -> "Session":
        return cls(user_id=user.id, login=user.user_id, name=user.name, type=user.type)
