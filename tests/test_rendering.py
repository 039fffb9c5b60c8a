"""Tests for the rich text helpers used by the POS screen."""

from decimal import Decimal

from cafepos.models import OrderStatus, PaymentMethod, Table
from cafepos.money import Money
from cafepos.pricing import apply_discount
from cafepos.rendering import (
    format_breakdown,
    format_line_item,
    format_order_header,
    format_status_badge,
    format_table_label,
)


def test_line_item_shows_subtotal_and_notes(ordering_order):
    text = format_line_item(ordering_order.items[1]).plain
    assert text.startswith("2 x Bia Saigon")
    assert "60.000 ₫" in text
    assert "* ít đá" in text


def test_breakdown_hides_zero_discount():
    plain = format_breakdown(apply_discount(Money(110000), 0)).plain
    assert "Giảm giá" not in plain
    assert "TỔNG: 110.000 ₫" in plain


def test_breakdown_with_discount_and_method():
    plain = format_breakdown(apply_discount(Money(110000), Decimal("12.5")), PaymentMethod.BANKING).plain
    assert "Giảm giá (12.5%): -13.750 ₫" in plain
    assert "TỔNG: 96.250 ₫" in plain
    assert plain.endswith("Phương thức: Chuyển khoản")


def test_order_header_states():
    table = Table(table_id=1, name="Bàn 1")
    assert format_order_header(None, None).plain == "(no table selected)"
    assert format_order_header(None, table).plain == "Bàn 1  new order"


def test_order_header_with_status_badge(ordering_order):
    header = format_order_header(ordering_order, Table(table_id=1, name="Bàn 1")).plain
    assert header == "Bàn 1  #7  Đang phục vụ "
    assert format_status_badge(OrderStatus.PAID).plain.strip() == "Đã thanh toán"


def test_table_label_marks_active_orders():
    assert format_table_label(Table(table_id=2, name="Bàn 2", has_active_order=True)).plain == "Bàn 2 ●"
    assert format_table_label(Table(table_id=3, name="Bàn 3")).plain == "Bàn 3"
