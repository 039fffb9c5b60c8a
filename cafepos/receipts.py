"""Map an order to printable documents: kitchen ticket, guest check, receipt, reprint.

``render`` is pure. Monetary values are read from the order as stored; the
only time-dependent field is ``printed_at``, which the caller supplies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from cafepos.config import (
    MAX_PRINT_COPIES,
    MIN_PRINT_COPIES,
    NORMAL_FONT_SIZE,
    PAPER_CHARS_PER_LINE,
    PAPER_MARGIN_MM,
    PAPER_WIDTH_MM,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_WIDTH_PX,
    SMALL_FONT_SIZE,
    TINY_FONT_SIZE,
    TITLE_FONT_SIZE,
)
from cafepos.constant import (
    INFO_LABELS,
    PAYMENT_METHOD_LABELS,
    RECEIPT_TEXT,
    REPRINT_MARKER,
    SHOP_SIGNATURE,
    TOTAL_LABELS,
    UNKNOWN_TABLE_NAME,
)
from cafepos.errors import StateError, ValidationError
from cafepos.models import Order, OrderStatus
from cafepos.money import Money
from cafepos.pricing import format_percentage, normalize_discount_percentage

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M"
CLOCK_FORMAT = "%H:%M:%S"


class DocumentKind(str, Enum):
    KITCHEN_ORDER = "kitchen_order"
    TEMPORARY_RECEIPT = "temporary_receipt"
    CUSTOMER_RECEIPT = "customer_receipt"
    REPRINT = "reprint"


@dataclass(frozen=True)
class ReceiptLayout:
    """Paper and font parameters; the renderer carries them, the dispatcher uses them."""

    paper_width_mm: int = PAPER_WIDTH_MM
    paper_margin_mm: int = PAPER_MARGIN_MM
    chars_per_line: int = PAPER_CHARS_PER_LINE
    width_px: int = PRINTER_WIDTH_PX
    left_indent_px: int = PRINTER_LEFT_INDENT_PX
    title_font_size: int = TITLE_FONT_SIZE
    normal_font_size: int = NORMAL_FONT_SIZE
    small_font_size: int = SMALL_FONT_SIZE
    tiny_font_size: int = TINY_FONT_SIZE


DEFAULT_LAYOUT = ReceiptLayout()


@dataclass(frozen=True)
class ReceiptMetadata:
    cashier_name: str
    printed_at: datetime
    payment_method_label: str | None = None
    discount_percentage: Decimal | None = None
    copies: int = 1


@dataclass(frozen=True)
class DocumentRow:
    name: str
    quantity: int
    notes: str = ""
    unit_price: Money | None = None
    amount: Money | None = None


@dataclass(frozen=True)
class TotalLine:
    label: str
    amount: Money | None = None
    text: str | None = None
    emphasis: bool = False
    negative: bool = False


@dataclass(frozen=True)
class PrintableDocument:
    """Value object handed to a print dispatcher."""

    kind: DocumentKind
    title: str
    subtitle: str
    info: tuple[tuple[str, str], ...]
    columns: tuple[str, ...]
    rows: tuple[DocumentRow, ...]
    totals: tuple[TotalLine, ...]
    footer: tuple[str, ...]
    printed_at: datetime
    copies: int = 1
    reprint_marker: str | None = None
    layout: ReceiptLayout = field(default=DEFAULT_LAYOUT)

    @property
    def is_reprint(self) -> bool:
        return self.reprint_marker is not None

    def money_fields(self) -> tuple[Money, ...]:
        """Every monetary value in print order, for comparing renders."""
        values: list[Money] = []
        for row in self.rows:
            if row.unit_price is not None:
                values.append(row.unit_price)
            if row.amount is not None:
                values.append(row.amount)
        for line in self.totals:
            if line.amount is not None:
                values.append(line.amount)
        return tuple(values)


def payment_method_label(order: Order, override: str | None = None) -> str:
    if override:
        return override
    if order.payment_method is None:
        return ""
    return PAYMENT_METHOD_LABELS.get(order.payment_method.value, order.payment_method.value)


def render(
    order: Order,
    kind: DocumentKind,
    metadata: ReceiptMetadata,
    layout: ReceiptLayout = DEFAULT_LAYOUT,
) -> PrintableDocument:
    """Render one document kind for ``order``."""
    kind = DocumentKind(kind)
    if not (MIN_PRINT_COPIES <= metadata.copies <= MAX_PRINT_COPIES):
        raise ValidationError(
            f"Copies must be between {MIN_PRINT_COPIES} and {MAX_PRINT_COPIES}",
            copies=metadata.copies,
        )

    if kind is DocumentKind.KITCHEN_ORDER:
        return _render_kitchen_order(order, metadata, layout)
    if kind is DocumentKind.TEMPORARY_RECEIPT:
        if order.status is not OrderStatus.ORDERING:
            raise StateError("A temporary receipt is only for unpaid orders", order_id=order.id, status=order.status.value)
        return _render_temporary_receipt(order, metadata, layout)

    if order.status is not OrderStatus.PAID:
        raise StateError("Receipts can only be printed for paid orders", order_id=order.id, status=order.status.value)
    _check_metadata_discount(order, metadata)
    marker = REPRINT_MARKER if kind is DocumentKind.REPRINT else None
    return _render_customer_receipt(order, kind, metadata, layout, marker)


def _order_number(order: Order) -> str:
    return str(order.id) if order.id is not None else "-"


def _format_time(value: datetime | None, fmt: str = TIMESTAMP_FORMAT) -> str:
    if value is None:
        return "N/A"
    return value.strftime(fmt)


def _base_info(order: Order) -> list[tuple[str, str]]:
    return [
        (INFO_LABELS["order_number"], _order_number(order)),
        (INFO_LABELS["table"], order.table_name or UNKNOWN_TABLE_NAME),
    ]


def _text(kind: str) -> dict[str, str | list[str]]:
    return RECEIPT_TEXT[kind]


def _footer(kind: str, printed_at: datetime, with_signature: bool = True) -> tuple[str, ...]:
    lines = list(_text(kind)["footer"])
    stamp = f"{INFO_LABELS['printed_at']}: {_format_time(printed_at, CLOCK_FORMAT)}"
    if with_signature:
        stamp = f"{SHOP_SIGNATURE} - {stamp}"
    lines.append(stamp)
    return tuple(lines)


def _render_kitchen_order(order: Order, metadata: ReceiptMetadata, layout: ReceiptLayout) -> PrintableDocument:
    text = _text(DocumentKind.KITCHEN_ORDER.value)
    info = _base_info(order)
    info.append((INFO_LABELS["time"], _format_time(metadata.printed_at)))
    if metadata.cashier_name:
        info.append((INFO_LABELS["cashier"], metadata.cashier_name))
    rows = tuple(DocumentRow(name=item.product_name, quantity=item.quantity, notes=item.notes) for item in order.items)
    return PrintableDocument(
        kind=DocumentKind.KITCHEN_ORDER,
        title=str(text["title"]),
        subtitle=str(text["subtitle"]),
        info=tuple(info),
        columns=tuple(text["columns"]),
        rows=rows,
        totals=(),
        footer=_footer(DocumentKind.KITCHEN_ORDER.value, metadata.printed_at, with_signature=False),
        printed_at=metadata.printed_at,
        copies=metadata.copies,
        layout=layout,
    )


def _priced_rows(order: Order) -> tuple[DocumentRow, ...]:
    return tuple(
        DocumentRow(
            name=item.product_name,
            quantity=item.quantity,
            notes=item.notes,
            unit_price=item.unit_price,
            amount=item.subtotal,
        )
        for item in order.items
    )


def _render_temporary_receipt(order: Order, metadata: ReceiptMetadata, layout: ReceiptLayout) -> PrintableDocument:
    text = _text(DocumentKind.TEMPORARY_RECEIPT.value)
    info = _base_info(order)
    info.append((INFO_LABELS["time"], _format_time(metadata.printed_at)))
    info.append((INFO_LABELS["cashier"], metadata.cashier_name))
    totals = (TotalLine(TOTAL_LABELS["running_total"], amount=order.items_total, emphasis=True),)
    return PrintableDocument(
        kind=DocumentKind.TEMPORARY_RECEIPT,
        title=str(text["title"]),
        subtitle=str(text["subtitle"]),
        info=tuple(info),
        columns=tuple(text["columns"]),
        rows=_priced_rows(order),
        totals=totals,
        footer=_footer(DocumentKind.TEMPORARY_RECEIPT.value, metadata.printed_at),
        printed_at=metadata.printed_at,
        copies=metadata.copies,
        layout=layout,
    )


def _check_metadata_discount(order: Order, metadata: ReceiptMetadata) -> None:
    if metadata.discount_percentage is None:
        return
    requested = normalize_discount_percentage(metadata.discount_percentage)
    stored = order.discount_percentage or Decimal(0)
    if requested != stored:
        raise ValidationError(
            "Discount does not match the paid order",
            order_id=order.id,
            requested=str(requested),
            stored=str(stored),
        )


def _render_customer_receipt(
    order: Order,
    kind: DocumentKind,
    metadata: ReceiptMetadata,
    layout: ReceiptLayout,
    marker: str | None,
) -> PrintableDocument:
    text = _text(DocumentKind.CUSTOMER_RECEIPT.value)
    info = _base_info(order)
    info.append((INFO_LABELS["payment_time"], _format_time(order.payment_date)))
    info.append((INFO_LABELS["cashier"], metadata.cashier_name))

    original = order.original_amount if order.original_amount is not None else order.items_total
    totals = [TotalLine(TOTAL_LABELS["subtotal"], amount=original)]
    pct = order.discount_percentage or Decimal(0)
    if pct > 0:
        discount = order.discount_amount if order.discount_amount is not None else Money(0)
        totals.append(
            TotalLine(
                f"{TOTAL_LABELS['discount']} ({format_percentage(pct)}%)",
                amount=discount,
                negative=True,
            )
        )
    totals.append(TotalLine(TOTAL_LABELS["final"], amount=order.total_amount, emphasis=True))
    totals.append(TotalLine(TOTAL_LABELS["payment_method"], text=payment_method_label(order, metadata.payment_method_label)))

    return PrintableDocument(
        kind=kind,
        title=str(text["title"]),
        subtitle=str(text["subtitle"]),
        info=tuple(info),
        columns=tuple(text["columns"]),
        rows=_priced_rows(order),
        totals=tuple(totals),
        footer=_footer(DocumentKind.CUSTOMER_RECEIPT.value, metadata.printed_at),
        printed_at=metadata.printed_at,
        copies=metadata.copies,
        reprint_marker=marker,
        layout=layout,
    )
