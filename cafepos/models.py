"""Domain models for cafepos."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from cafepos.money import Money, total


class OrderStatus(str, Enum):
    ORDERING = "Ordering"
    PAID = "Paid"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.ORDERING


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CARD = "Card"
    BANKING = "Banking"


@dataclass(frozen=True)
class Product:
    """A sellable catalog product."""

    product_id: int
    name: str
    unit_price: Money
    category: str = ""


@dataclass(frozen=True)
class Table:
    """A café table; ``has_active_order`` is the server's hint, not authoritative."""

    table_id: int
    name: str
    capacity: int = 4
    has_active_order: bool = False


@dataclass
class LineItem:
    """One product, its quantity and an optional kitchen note."""

    product_id: int
    product_name: str
    unit_price: Money
    quantity: int = 1
    notes: str = ""
    item_id: int | None = None

    @property
    def subtotal(self) -> Money:
        return self.unit_price * self.quantity

    def copy(self) -> LineItem:
        return LineItem(
            product_id=self.product_id,
            product_name=self.product_name,
            unit_price=self.unit_price,
            quantity=self.quantity,
            notes=self.notes,
            item_id=self.item_id,
        )


@dataclass(frozen=True)
class Order:
    """Server-persisted aggregate for a table's transaction. Transitions return new instances."""

    id: int | None
    table_id: int
    table_name: str
    items: tuple[LineItem, ...] = field(default_factory=tuple)
    total_amount: Money = Money(0)
    status: OrderStatus = OrderStatus.ORDERING
    order_date: datetime | None = None
    payment_date: datetime | None = None
    payment_method: PaymentMethod | None = None
    discount_percentage: Decimal | None = None
    discount_amount: Money | None = None
    original_amount: Money | None = None

    @property
    def items_total(self) -> Money:
        return total(item.subtotal for item in self.items)

    @property
    def has_discount(self) -> bool:
        return bool(self.discount_percentage) and self.discount_amount is not None

    def find_item(self, product_id: int) -> LineItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None


@dataclass(frozen=True)
class Payment:
    """Payment record as returned by the server."""

    payment_id: int | None
    order_id: int
    payment_type: PaymentMethod
    amount: Money
    discount_percentage: Decimal = Decimal(0)
    discount_amount: Money = Money(0)
    original_amount: Money = Money(0)
    payment_date: datetime | None = None


@dataclass(frozen=True)
class ItemRequest:
    product_id: int
    quantity: int = 1
    notes: str = ""


@dataclass(frozen=True)
class PaymentRequest:
    order_id: int
    payment_type: PaymentMethod
    discount_percentage: Decimal | None = None


@dataclass(frozen=True)
class ItemRemoval:
    """Result of deleting an order line; the server may have auto-cancelled the order."""

    order: Order
    order_cancelled: bool
    remaining_items: int = 0


@dataclass(frozen=True)
class StatusChange:
    """Result of a status request; ``already_in_status`` marks an idempotent repeat."""

    order: Order
    already_in_status: bool
