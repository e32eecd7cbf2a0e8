"""Per-vendor stock and price ledger."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Iterable

from .areas import AreaRegistry
from .entity_store import EntityStore
from .errors import ForbiddenError, NotFoundError, PartialFailureError, ValidationError
from .logger import setup_logger
from .models import CENT, InventoryItem, Session, _money

logger = setup_logger(__name__)

LOW_STOCK_THRESHOLD = 50

# Starter catalog for a vendor with an empty inventory: (name, price, stock, description)
DEFAULT_CATALOG = (
    ("Pure Water", "45", 50, "Premium purified water"),
    ("Spring Water", "55", 30, "Natural spring water"),
    ("Alkaline Water", "65", 25, "pH balanced alkaline water"),
)


def _check_price(price) -> Decimal:
    try:
        value = _money(price)
    except (InvalidOperation, ValueError):
        raise ValidationError("price", f"not a number: {price!r}")
    if not value.is_finite() or value <= 0:
        raise ValidationError("price", "must be greater than zero")
    if value != value.quantize(CENT):
        raise ValidationError("price", f"cannot go below a cent: {value}")
    return value


def _check_stock(stock) -> int:
    if isinstance(stock, bool) or not isinstance(stock, int):
        raise ValidationError("stock", f"must be a whole number of cans, got {stock!r}")
    if stock < 0:
        raise ValidationError("stock", "cannot be negative")
    return stock


class InventoryLedger:
    """Stock and price records, one private collection per vendor.

    Stock changes only through a vendor's manual edit or through decrement()
    when an order is delivered.
    """

    def __init__(self, store: EntityStore, low_stock_threshold: int = LOW_STOCK_THRESHOLD):
        self.store = store
        self.low_stock_threshold = low_stock_threshold

    def list(self, vendor_id: str) -> list[InventoryItem]:
        """A vendor's items, newest first."""
        items = self.store.list(InventoryItem, vendor_id=vendor_id)
        items.sort(key=lambda i: i.created_at, reverse=True)
        return items

    def list_for_area(self, areas: AreaRegistry, area_id: str) -> list[InventoryItem]:
        """The catalog offered to customers of an area."""
        return self.list(areas.resolve_vendor_for_area(area_id))

    def get(self, item_id: str) -> InventoryItem:
        item = self.store.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return item

    def _owned(self, vendor_id: str, item_id: str) -> InventoryItem:
        item = self.get(item_id)
        if item.vendor_id != vendor_id:
            raise ForbiddenError("Inventory item belongs to another vendor")
        return item

    def upsert(self, session: Session, item: InventoryItem) -> InventoryItem:
        """
        Create an item, or overwrite name, price, stock and description of an existing one.

        Raises:
            ForbiddenError: If the session isn't the item's vendor.
            ValidationError: On a blank name, non-positive price or negative stock.
        """
        if not session.is_vendor or item.vendor_id != session.user_id:
            raise ForbiddenError("Only the owning vendor can edit inventory")
        if not item.name or not item.name.strip():
            raise ValidationError("name", "item name is required")
        price = _check_price(item.price)
        stock = _check_stock(item.stock)

        existing = self.store.get(InventoryItem, item.id)
        if existing is None:
            item.name = item.name.strip()
            item.price = price
            self.store.create(item)
            logger.info("Added %s to %s's inventory", item.name, session.login)
            return item

        if existing.vendor_id != session.user_id:
            raise ForbiddenError("Inventory item belongs to another vendor")
        return self.store.update(
            InventoryItem,
            item.id,
            {
                "name": item.name.strip(),
                "price": price,
                "stock": stock,
                "description": item.description,
            },
        )

    def add_item(
        self, session: Session, name: str, price, stock: int, description: str = ""
    ) -> InventoryItem:
        return self.upsert(
            session,
            InventoryItem.create(
                vendor_id=session.user_id,
                name=name,
                price=_check_price(price),
                stock=stock,
                description=description,
            ),
        )

    def adjust_stock(self, session: Session, item_id: str, stock: int) -> InventoryItem:
        self._owned(session.user_id, item_id)
        return self.store.update(InventoryItem, item_id, {"stock": _check_stock(stock)})

    def adjust_price(self, session: Session, item_id: str, price) -> InventoryItem:
        self._owned(session.user_id, item_id)
        return self.store.update(InventoryItem, item_id, {"price": _check_price(price)})

    def delete(self, session: Session, item_id: str) -> None:
        self._owned(session.user_id, item_id)
        self.store.delete(InventoryItem, item_id)

    def decrement(self, vendor_id: str, lines: Iterable[tuple[str, int]]) -> None:
        """
        Take delivered quantities out of a vendor's stock.

        Stock is clamped at zero rather than going negative. Lines naming an
        item the vendor doesn't have are skipped; the rest are still applied.

        Args:
            vendor_id: Vendor whose stock is reduced.
            lines: (item_id, quantity) pairs.

        Raises:
            PartialFailureError: If any line could not be resolved.
        """
        missing: list[str] = []
        with self.store.transaction():
            for item_id, quantity in lines:
                item = self.store.get(InventoryItem, item_id)
                if item is None or item.vendor_id != vendor_id:
                    missing.append(item_id)
                    continue
                new_stock = max(0, item.stock - quantity)
                if quantity > item.stock:
                    logger.info(
                        "Stock for %s clamped at 0 (had %d, delivered %d)",
                        item.name, item.stock, quantity,
                    )
                self.store.update(InventoryItem, item.id, {"stock": new_stock})

        if missing:
            raise PartialFailureError("inventory decrement", missing)

    def low_stock(self, vendor_id: str) -> list[InventoryItem]:
        """Items below the low-stock threshold."""
        return [i for i in self.list(vendor_id) if i.is_low_stock(self.low_stock_threshold)]

    def seed_default_catalog(self, vendor_id: str) -> list[InventoryItem]:
        """Give a vendor with no items the starter water catalog."""
        if self.store.list(InventoryItem, vendor_id=vendor_id):
            return []
        seeded = []
        with self.store.transaction():
            for name, price, stock, description in DEFAULT_CATALOG:
                item = InventoryItem.create(
                    vendor_id=vendor_id,
                    name=name,
                    price=price,
                    stock=stock,
                    description=description,
                )
                self.store.create(item)
                seeded.append(item)
        return seeded
