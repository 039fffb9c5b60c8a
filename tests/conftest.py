"""Shared pytest fixtures: an in-memory order server and wired-up sessions."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from cafepos.config import Settings
from cafepos.errors import NotFoundError, PosError, StateError
from cafepos.lifecycle import OrderLifecycleController
from cafepos.models import (
    ItemRemoval,
    ItemRequest,
    LineItem,
    Order,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentRequest,
    Product,
    StatusChange,
    Table,
)
from cafepos.money import Money
from cafepos.persistence import PrintJournal
from cafepos.pricing import apply_discount
from cafepos.printer import PreviewPrintDispatcher
from cafepos.session import PosSession

FIXED_NOW = datetime(2026, 3, 14, 9, 30, 0)
SERVER_PAYMENT_TIME = datetime(2026, 3, 14, 9, 31, 5)


class InMemoryOrderApi:
    """Order server double with the real server's rules.

    Adding an existing product merges quantities, deleting the last line
    cancels the order, repeated status requests report ``already_in_status``
    and a second payment is rejected. ``fail_next`` makes the next call raise.
    """

    def __init__(self, products: list[Product], tables: list[Table]) -> None:
        self.products = {product.product_id: product for product in products}
        self.tables = list(tables)
        self.orders: dict[int, Order] = {}
        self.calls: list[str] = []
        self.fail_next: PosError | None = None
        self._next_order_id = 100
        self._next_item_id = 1

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    def _order(self, order_id: int) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=order_id)
        return order

    def _ordering(self, order_id: int) -> Order:
        order = self._order(order_id)
        if order.status is not OrderStatus.ORDERING:
            raise StateError("Order is not in ordering state", order_id=order_id)
        return order

    def _store(self, order: Order, items: list[LineItem]) -> Order:
        updated = replace(order, items=tuple(items))
        updated = replace(updated, total_amount=updated.items_total)
        self.orders[order.id] = updated
        return updated

    def get_products(self) -> list[Product]:
        self._record("get_products")
        return list(self.products.values())

    def get_tables(self) -> list[Table]:
        self._record("get_tables")
        return list(self.tables)

    def get_orders(self) -> list[Order]:
        self._record("get_orders")
        return list(self.orders.values())

    def get_order(self, order_id: int) -> Order:
        self._record("get_order")
        return self._order(order_id)

    def create_order(self, table_id: int) -> Order:
        self._record("create_order")
        table = next((table for table in self.tables if table.table_id == table_id), None)
        order = Order(
            id=self._next_order_id,
            table_id=table_id,
            table_name=table.name if table else "",
            order_date=FIXED_NOW,
        )
        self._next_order_id += 1
        self.orders[order.id] = order
        return order

    def add_order_item(self, order_id: int, item: ItemRequest) -> Order:
        self._record("add_order_item")
        order = self._ordering(order_id)
        product = self.products.get(item.product_id)
        if product is None:
            raise NotFoundError("Product not found", product_id=item.product_id)
        items = [line.copy() for line in order.items]
        for line in items:
            if line.product_id == item.product_id:
                line.quantity += item.quantity
                break
        else:
            items.append(
                LineItem(
                    product_id=product.product_id,
                    product_name=product.name,
                    unit_price=product.unit_price,
                    quantity=item.quantity,
                    notes=item.notes,
                    item_id=self._next_item_id,
                )
            )
            self._next_item_id += 1
        return self._store(order, items)

    def update_order_item(self, order_id: int, item_id: int, quantity: int, notes: str = "") -> Order:
        self._record("update_order_item")
        order = self._ordering(order_id)
        items = [line.copy() for line in order.items]
        for line in items:
            if line.item_id == item_id:
                line.quantity = quantity
                line.notes = notes or ""
                break
        else:
            raise NotFoundError("Order item not found", item_id=item_id)
        return self._store(order, items)

    def delete_order_item(self, order_id: int, item_id: int) -> ItemRemoval:
        self._record("delete_order_item")
        order = self._ordering(order_id)
        items = [line.copy() for line in order.items if line.item_id != item_id]
        if len(items) == len(order.items):
            raise NotFoundError("Order item not found", item_id=item_id)
        updated = self._store(order, items)
        if not items:
            updated = replace(updated, status=OrderStatus.CANCELLED)
            self.orders[order_id] = updated
        return ItemRemoval(order=updated, order_cancelled=not items, remaining_items=len(items))

    def update_order_status(self, order_id: int, status: OrderStatus) -> StatusChange:
        self._record("update_order_status")
        order = self._order(order_id)
        if order.status is status:
            return StatusChange(order=order, already_in_status=True)
        if order.status is OrderStatus.CANCELLED:
            raise StateError("Cannot change status of cancelled order", order_id=order_id)
        if order.status is OrderStatus.PAID:
            raise StateError("Order has already been paid", order_id=order_id)
        updated = replace(order, status=status)
        self.orders[order_id] = updated
        return StatusChange(order=updated, already_in_status=False)

    def create_payment(self, request: PaymentRequest) -> Payment:
        self._record("create_payment")
        order = self._order(request.order_id)
        if order.status is OrderStatus.PAID:
            raise StateError("Order has already been paid", order_id=order.id)
        if order.status is not OrderStatus.ORDERING:
            raise StateError("Order is not in ordering state", order_id=order.id)
        breakdown = apply_discount(order.items_total, request.discount_percentage)
        self.orders[order.id] = replace(
            order,
            status=OrderStatus.PAID,
            total_amount=breakdown.final_amount,
            payment_method=PaymentMethod(request.payment_type),
            payment_date=SERVER_PAYMENT_TIME,
            discount_percentage=breakdown.discount_percentage if breakdown.has_discount else None,
            discount_amount=breakdown.discount_amount if breakdown.has_discount else None,
            original_amount=breakdown.original_amount,
        )
        return Payment(
            payment_id=len(self.calls),
            order_id=order.id,
            payment_type=PaymentMethod(request.payment_type),
            amount=breakdown.final_amount,
            discount_percentage=breakdown.discount_percentage,
            discount_amount=breakdown.discount_amount,
            original_amount=breakdown.original_amount,
            payment_date=SERVER_PAYMENT_TIME,
        )


@pytest.fixture
def coffee() -> Product:
    return Product(product_id=1, name="Cà phê sữa", unit_price=Money(50000), category="Coffee")


@pytest.fixture
def beer() -> Product:
    return Product(product_id=2, name="Bia Saigon", unit_price=Money(30000), category="Beer")


@pytest.fixture
def products(coffee: Product, beer: Product) -> list[Product]:
    return [coffee, beer, Product(product_id=3, name="Trà đào", unit_price=Money(45000), category="Tea")]


@pytest.fixture
def tables() -> list[Table]:
    return [Table(table_id=1, name="Bàn 1"), Table(table_id=2, name="Bàn 2", capacity=6)]


@pytest.fixture
def api(products: list[Product], tables: list[Table]) -> InMemoryOrderApi:
    return InMemoryOrderApi(products, tables)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(db_path=str(tmp_path / "cafepos.db"), debug_log_path=str(tmp_path / "debug.log"), cashier_name="Lan")


@pytest.fixture
def preview_printer() -> PreviewPrintDispatcher:
    return PreviewPrintDispatcher()


@pytest.fixture
def journal(settings: Settings) -> PrintJournal:
    return PrintJournal(settings.db_path)


@pytest.fixture
def session(api, settings, preview_printer, journal) -> PosSession:
    return PosSession(api, settings=settings, printer=preview_printer, journal=journal, clock=lambda: FIXED_NOW)


@pytest.fixture
def controller() -> OrderLifecycleController:
    return OrderLifecycleController()


@pytest.fixture
def ordering_order(coffee: Product, beer: Product) -> Order:
    """Bàn 1 with one coffee and two beers: 110.000 ₫."""
    items = (
        LineItem(product_id=coffee.product_id, product_name=coffee.name, unit_price=coffee.unit_price, quantity=1, item_id=1),
        LineItem(
            product_id=beer.product_id,
            product_name=beer.name,
            unit_price=beer.unit_price,
            quantity=2,
            notes="ít đá",
            item_id=2,
        ),
    )
    return Order(id=7, table_id=1, table_name="Bàn 1", items=items, total_amount=Money(110000), order_date=FIXED_NOW)


@pytest.fixture
def paid_order(ordering_order: Order, controller: OrderLifecycleController) -> Order:
    """The same order paid by card with a 15% discount."""
    return controller.checkout(ordering_order, PaymentMethod.CARD, Decimal("15"), SERVER_PAYMENT_TIME)
