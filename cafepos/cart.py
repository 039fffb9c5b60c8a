"""Client-local draft of line items for the order being built."""

from __future__ import annotations

from typing import Iterable, Mapping

import structlog

from cafepos.config import MAX_ITEMS_PER_ORDER, MAX_NOTE_LENGTH, MAX_QUANTITY_PER_ITEM
from cafepos.constant import UNKNOWN_PRODUCT_NAME
from cafepos.errors import NotFoundError, ValidationError
from cafepos.models import LineItem, Product
from cafepos.money import Money, total

logger = structlog.get_logger(__name__)


class Cart:
    """Ordered line items, unique by product id. Owned by exactly one session."""

    def __init__(
        self,
        max_quantity_per_item: int = MAX_QUANTITY_PER_ITEM,
        max_items: int = MAX_ITEMS_PER_ORDER,
        max_note_length: int = MAX_NOTE_LENGTH,
    ) -> None:
        self.max_quantity_per_item = max_quantity_per_item
        self.max_items = max_items
        self.max_note_length = max_note_length
        self._items: list[LineItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self.items())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def items(self) -> tuple[LineItem, ...]:
        """Snapshot copies; mutating them does not touch the cart."""
        return tuple(item.copy() for item in self._items)

    def get(self, product_id: int) -> LineItem | None:
        index = self._index_of(product_id)
        if index is None:
            return None
        return self._items[index].copy()

    def add_item(self, product: Product) -> LineItem:
        """Add one unit of ``product``; an existing row is incremented instead of duplicated."""
        index = self._index_of(product.product_id)
        if index is not None:
            item = self._items[index]
            new_quantity = item.quantity + 1
            self._check_quantity(new_quantity, product.product_id)
            item.quantity = new_quantity
            return item.copy()

        if len(self._items) >= self.max_items:
            raise ValidationError(
                f"An order can hold at most {self.max_items} items",
                product_id=product.product_id,
                limit=self.max_items,
            )
        item = LineItem(
            product_id=product.product_id,
            product_name=product.name,
            unit_price=product.unit_price,
            quantity=1,
        )
        self._items.append(item)
        return item.copy()

    def update_quantity(self, product_id: int, quantity: int) -> LineItem | None:
        """Set quantity; ``quantity <= 0`` removes the row and returns ``None``."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Quantity must be a whole number", product_id=product_id, quantity=quantity)
        index = self._index_of(product_id)
        if index is None:
            raise NotFoundError("Item is not in the cart", product_id=product_id)
        if quantity <= 0:
            self._items.pop(index)
            return None
        self._check_quantity(quantity, product_id)
        item = self._items[index]
        item.quantity = quantity
        return item.copy()

    def remove_item(self, product_id: int) -> LineItem | None:
        index = self._index_of(product_id)
        if index is None:
            return None
        return self._items.pop(index).copy()

    def update_notes(self, product_id: int, notes: str) -> LineItem:
        notes = notes or ""
        if len(notes) > self.max_note_length:
            raise ValidationError(
                f"Notes are limited to {self.max_note_length} characters",
                product_id=product_id,
                length=len(notes),
            )
        index = self._index_of(product_id)
        if index is None:
            raise NotFoundError("Item is not in the cart", product_id=product_id)
        item = self._items[index]
        item.notes = notes
        return item.copy()

    def set_item_id(self, product_id: int, item_id: int | None) -> None:
        """Record the server row id for a line once the backend has assigned one."""
        index = self._index_of(product_id)
        if index is not None:
            self._items[index].item_id = item_id

    def restore(self, items: Iterable[LineItem]) -> None:
        """Replace contents with copies of ``items`` (used to undo a rejected change)."""
        self._items = [item.copy() for item in items]

    def total(self) -> Money:
        return total(item.subtotal for item in self._items)

    def load_from_order(self, items: Iterable[LineItem], catalog: Mapping[int, Product] | Iterable[Product]) -> None:
        """Rebuild from persisted order lines, naming products from the catalog when possible."""
        products = _catalog_by_id(catalog)
        loaded: list[LineItem] = []
        for item in items:
            product = products.get(item.product_id)
            if product is not None:
                name = product.name
            else:
                name = item.product_name or UNKNOWN_PRODUCT_NAME
                logger.info("cart_product_missing_from_catalog", product_id=item.product_id, fallback_name=name)
            loaded.append(
                LineItem(
                    product_id=item.product_id,
                    product_name=name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    notes=item.notes or "",
                    item_id=item.item_id,
                )
            )
        self._items = loaded

    def clear(self) -> None:
        self._items.clear()

    def _index_of(self, product_id: int) -> int | None:
        for idx, item in enumerate(self._items):
            if item.product_id == product_id:
                return idx
        return None

    def _check_quantity(self, quantity: int, product_id: int) -> None:
        if quantity > self.max_quantity_per_item:
            raise ValidationError(
                f"Quantity is limited to {self.max_quantity_per_item} per item",
                product_id=product_id,
                quantity=quantity,
                limit=self.max_quantity_per_item,
            )


def _catalog_by_id(catalog: Mapping[int, Product] | Iterable[Product]) -> dict[int, Product]:
    if isinstance(catalog, Mapping):
        return dict(catalog)
    return {product.product_id: product for product in catalog}
