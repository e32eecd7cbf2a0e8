"""The customer's unsubmitted cart."""

from decimal import Decimal

from .models import InventoryItem, OrderItem


class Cart:
    """(item, quantity) pairs picked from one vendor's catalog.

    Quantities never exceed the stock the item had when it was picked.
    """

    def __init__(self) -> None:
        self._lines: dict[str, OrderItem] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def quantity(self, item_id: str) -> int:
        line = self._lines.get(item_id)
        return line.quantity if line else 0

    def add(self, item: InventoryItem) -> bool:
        """Add one unit. Returns False if the item is out of stock or already maxed."""
        if item.stock <= 0:
            return False
        line = self._lines.get(item.id)
        if line is None:
            self._lines[item.id] = OrderItem(id=item.id, name=item.name, price=item.price, quantity=1)
            return True
        if line.quantity >= item.stock:
            return False
        line.quantity += 1
        return True

    def set_quantity(self, item: InventoryItem, quantity: int) -> bool:
        """Set a line's quantity; zero or less removes it, above stock is refused."""
        if quantity <= 0:
            self.remove(item.id)
            return True
        if quantity > item.stock:
            return False
        line = self._lines.get(item.id)
        if line is None:
            self._lines[item.id] = OrderItem(
                id=item.id, name=item.name, price=item.price, quantity=quantity
            )
        else:
            line.quantity = quantity
        return True

    def remove(self, item_id: str) -> None:
        self._lines.pop(item_id, None)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal("0"))

    def to_order_items(self) -> list[OrderItem]:
        """Snapshot the lines for an order."""
        return [
            OrderItem(id=line.id, name=line.name, price=line.price, quantity=line.quantity)
            for line in self._lines.values()
        ]
