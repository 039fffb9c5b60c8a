"""Order lifecycle state machine: Ordering -> Paid | Cancelled.

The controller is pure. It never talks to the network; callers pair each
transition with the matching API request (see ``cafepos.session``). The
auto-cancel that follows removing the last line is its own transition,
``cancel_if_empty``, so it can be exercised without a backend.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

import structlog

from cafepos.errors import StateError, ValidationError
from cafepos.models import LineItem, Order, OrderStatus, Payment, PaymentMethod, StatusChange, Table
from cafepos.pricing import apply_discount

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    """An order after a transition, flagging the automatic Ordering -> Cancelled step."""

    order: Order
    auto_cancelled: bool = False


class OrderLifecycleController:
    """Applies lifecycle rules to immutable ``Order`` values."""

    def start(self, table: Table, now: datetime) -> Order:
        """Draft a new Ordering order for a table with no open order."""
        return Order(
            id=None,
            table_id=table.table_id,
            table_name=table.name,
            status=OrderStatus.ORDERING,
            order_date=now,
        )

    def ensure_mutable(self, order: Order) -> None:
        if order.status.is_terminal:
            raise StateError(
                f"Order is {order.status.value} and can no longer be changed",
                order_id=order.id,
                status=order.status.value,
            )

    def add_item(self, order: Order, line: LineItem) -> Order:
        """Merge ``line`` into the order; an existing product row gains its quantity."""
        self.ensure_mutable(order)
        if line.quantity < 1:
            raise ValidationError("Quantity must be at least 1", product_id=line.product_id)
        items = [item.copy() for item in order.items]
        for item in items:
            if item.product_id == line.product_id:
                item.quantity += line.quantity
                if line.notes:
                    item.notes = line.notes
                break
        else:
            items.append(line.copy())
        return self._with_items(order, items)

    def update_item(
        self,
        order: Order,
        product_id: int,
        quantity: int | None = None,
        notes: str | None = None,
    ) -> Transition:
        self.ensure_mutable(order)
        if quantity is not None and quantity <= 0:
            return self.remove_item(order, product_id)
        items = [item.copy() for item in order.items]
        for item in items:
            if item.product_id == product_id:
                if quantity is not None:
                    item.quantity = quantity
                if notes is not None:
                    item.notes = notes
                break
        else:
            return Transition(order)
        return Transition(self._with_items(order, items))

    def remove_item(self, order: Order, product_id: int) -> Transition:
        """Drop a line; removing the last one auto-cancels the order."""
        self.ensure_mutable(order)
        items = [item.copy() for item in order.items if item.product_id != product_id]
        updated = self._with_items(order, items)
        if items:
            return Transition(updated)
        return self.cancel_if_empty(updated)

    def cancel_if_empty(self, order: Order) -> Transition:
        if order.status is not OrderStatus.ORDERING or order.items:
            return Transition(order)
        logger.info("order_auto_cancelled", order_id=order.id, table_id=order.table_id)
        return Transition(replace(order, status=OrderStatus.CANCELLED), auto_cancelled=True)

    def request_status(self, order: Order, status: OrderStatus) -> StatusChange:
        """Validate an explicit status request; repeating the current status is a no-op success."""
        if order.status is status:
            return StatusChange(order=order, already_in_status=True)
        self.ensure_mutable(order)
        if status is OrderStatus.PAID:
            raise StateError("An order can only be marked paid through checkout", order_id=order.id)
        return StatusChange(order=replace(order, status=status), already_in_status=False)

    def checkout(
        self,
        order: Order,
        method: PaymentMethod | None,
        discount_percentage: object,
        now: datetime,
    ) -> Order:
        """Ordering -> Paid with final pricing; ``now`` is the client's candidate payment time."""
        self.ensure_mutable(order)
        if not order.items:
            raise ValidationError("Cannot check out an empty cart", order_id=order.id)
        if method is None:
            raise ValidationError("A payment method is required", order_id=order.id)
        try:
            method = PaymentMethod(method)
        except ValueError as exc:
            raise ValidationError("Unknown payment method", order_id=order.id, method=str(method)) from exc

        breakdown = apply_discount(order.items_total, discount_percentage)
        return replace(
            order,
            status=OrderStatus.PAID,
            payment_method=method,
            payment_date=now,
            original_amount=breakdown.original_amount,
            discount_percentage=breakdown.discount_percentage if breakdown.has_discount else None,
            discount_amount=breakdown.discount_amount if breakdown.has_discount else None,
            total_amount=breakdown.final_amount,
        )

    def reconcile_payment(self, order: Order, payment: Payment) -> Order:
        """Adopt the server's payment timestamp; locally rounded amounts stay authoritative."""
        if payment.amount != order.total_amount:
            logger.warning(
                "payment_amount_mismatch",
                order_id=order.id,
                local_amount=order.total_amount.amount,
                server_amount=payment.amount.amount,
            )
        server_pct = payment.discount_percentage or Decimal(0)
        local_pct = order.discount_percentage or Decimal(0)
        if server_pct != local_pct:
            logger.warning(
                "payment_discount_mismatch",
                order_id=order.id,
                local_percentage=str(local_pct),
                server_percentage=str(server_pct),
            )
        if payment.payment_date is None:
            return order
        return replace(order, payment_date=payment.payment_date)

    def _with_items(self, order: Order, items: list[LineItem]) -> Order:
        updated = replace(order, items=tuple(items))
        return replace(updated, total_amount=updated.items_total)
