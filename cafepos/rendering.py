"""Rich text helpers for the POS screen."""

from __future__ import annotations

from rich.text import Text

from cafepos.constant import ORDER_STATUS_LABELS, PAYMENT_METHOD_LABELS
from cafepos.models import LineItem, Order, OrderStatus, PaymentMethod, Product, Table
from cafepos.pricing import PriceBreakdown, format_percentage


def status_style(status: OrderStatus) -> str:
    """Return a consistent badge style for order statuses."""
    if status is OrderStatus.PAID:
        return "bold #0b1f0f on #5fbf72"
    if status is OrderStatus.CANCELLED:
        return "bold #ffffff on #b23a48"
    return "bold #ffffff on #2f6db5"


def format_status_badge(status: OrderStatus) -> Text:
    return Text(f" {ORDER_STATUS_LABELS.get(status.value, status.value)} ", style=status_style(status))


def format_table_label(table: Table, selected: bool = False) -> Text:
    """Render a table name, marking tables that hold an open order."""
    text = Text()
    text.append(table.name, style="bold" if selected else "")
    if table.has_active_order:
        text.append(" ●", style="#5fbf72")
    return text


def format_product_label(product: Product) -> Text:
    text = Text()
    text.append(product.name)
    text.append(f"  {product.unit_price}", style="dim")
    if product.category:
        text.append(f"  [{product.category}]", style="italic dim")
    return text


def format_line_item(item: LineItem) -> Text:
    """Render one cart line as ``qty x name   subtotal`` with notes beneath."""
    text = Text()
    text.append(f"{item.quantity} x ", style="bold")
    text.append(item.product_name)
    text.append(f"  {item.subtotal}", style="dim")
    if item.notes:
        text.append(f"\n      * {item.notes}", style="italic")
    return text


def format_order_header(order: Order | None, table: Table | None) -> Text:
    text = Text()
    if table is None:
        text.append("(no table selected)", style="dim")
        return text
    text.append(f"{table.name}", style="bold")
    if order is None or order.id is None:
        text.append("  new order", style="dim")
        return text
    text.append(f"  #{order.id} ")
    text.append_text(format_status_badge(order.status))
    return text


def format_breakdown(breakdown: PriceBreakdown, method: PaymentMethod | None = None) -> Text:
    """Render the payment preview: subtotal, optional discount, final and method."""
    text = Text()
    text.append(f"Tạm tính: {breakdown.original_amount}\n")
    if breakdown.has_discount:
        text.append(
            f"Giảm giá ({format_percentage(breakdown.discount_percentage)}%): -{breakdown.discount_amount}\n",
            style="#ffb3b3",
        )
    text.append(f"TỔNG: {breakdown.final_amount}", style="bold")
    if method is not None:
        text.append(f"\nPhương thức: {PAYMENT_METHOD_LABELS.get(method.value, method.value)}")
    return text
