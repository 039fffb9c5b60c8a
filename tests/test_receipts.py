"""Tests for the receipt renderer."""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from conftest import FIXED_NOW
from cafepos.constant import REPRINT_MARKER
from cafepos.errors import StateError, ValidationError
from cafepos.models import OrderStatus
from cafepos.money import Money
from cafepos.receipts import DocumentKind, ReceiptMetadata, render


def _metadata(**overrides) -> ReceiptMetadata:
    values = {"cashier_name": "Lan", "printed_at": FIXED_NOW}
    values.update(overrides)
    return ReceiptMetadata(**values)


class TestKitchenOrder:
    def test_lists_items_without_prices(self, ordering_order):
        document = render(ordering_order, DocumentKind.KITCHEN_ORDER, _metadata())

        assert [(row.name, row.quantity) for row in document.rows] == [("Cà phê sữa", 1), ("Bia Saigon", 2)]
        assert document.rows[1].notes == "ít đá"
        assert document.money_fields() == ()
        assert document.totals == ()

    def test_printable_in_any_status(self, paid_order):
        document = render(paid_order, DocumentKind.KITCHEN_ORDER, _metadata())
        assert len(document.rows) == 2


class TestTemporaryReceipt:
    def test_shows_running_total(self, ordering_order):
        document = render(ordering_order, DocumentKind.TEMPORARY_RECEIPT, _metadata())

        assert document.totals[-1].amount == Money(110000)
        assert document.totals[-1].emphasis
        assert [row.amount for row in document.rows] == [Money(50000), Money(60000)]

    def test_rejects_paid_orders(self, paid_order):
        with pytest.raises(StateError):
            render(paid_order, DocumentKind.TEMPORARY_RECEIPT, _metadata())


class TestCustomerReceipt:
    def test_discount_block(self, paid_order):
        document = render(paid_order, DocumentKind.CUSTOMER_RECEIPT, _metadata())
        labels = [line.label for line in document.totals]

        assert "Giảm giá (15%)" in labels
        discount = next(line for line in document.totals if line.negative)
        assert discount.amount == Money(16500)
        assert document.totals[labels.index("TỔNG THANH TOÁN")].amount == Money(93500)
        assert document.totals[-1].text == "Thẻ"

    def test_no_discount_line_without_discount(self, ordering_order, controller):
        paid = controller.checkout(ordering_order, "Cash", 0, FIXED_NOW)
        document = render(paid, DocumentKind.CUSTOMER_RECEIPT, _metadata())

        assert not any(line.negative for line in document.totals)
        assert document.totals[0].amount == Money(110000)

    def test_requires_paid_order(self, ordering_order):
        with pytest.raises(StateError):
            render(ordering_order, DocumentKind.CUSTOMER_RECEIPT, _metadata())
        with pytest.raises(StateError):
            render(replace(ordering_order, status=OrderStatus.CANCELLED), DocumentKind.REPRINT, _metadata())

    def test_metadata_discount_must_match_order(self, paid_order):
        render(paid_order, DocumentKind.CUSTOMER_RECEIPT, _metadata(discount_percentage=Decimal("15")))
        with pytest.raises(ValidationError):
            render(paid_order, DocumentKind.CUSTOMER_RECEIPT, _metadata(discount_percentage=Decimal("20")))

    def test_payment_time_comes_from_order(self, paid_order):
        document = render(paid_order, DocumentKind.CUSTOMER_RECEIPT, _metadata())
        assert ("Thanh toán lúc", "14/03/2026 09:31") in document.info


class TestReprint:
    def test_matches_customer_receipt_except_marker(self, paid_order):
        original = render(paid_order, DocumentKind.CUSTOMER_RECEIPT, _metadata())
        reprint = render(paid_order, DocumentKind.REPRINT, _metadata(printed_at=datetime(2026, 3, 15, 18, 0, 0)))

        assert reprint.money_fields() == original.money_fields()
        assert reprint.rows == original.rows
        assert reprint.totals == original.totals
        assert reprint.info == original.info
        assert reprint.is_reprint and reprint.reprint_marker == REPRINT_MARKER
        assert not original.is_reprint

    def test_printed_at_only_reaches_footer(self, paid_order):
        first = render(paid_order, DocumentKind.REPRINT, _metadata())
        later = render(paid_order, DocumentKind.REPRINT, _metadata(printed_at=datetime(2026, 3, 15, 18, 0, 0)))

        assert first.money_fields() == later.money_fields()
        assert first.footer != later.footer
        assert later.footer[-1].endswith("In lúc: 18:00:00")


class TestCopies:
    @pytest.mark.parametrize("copies", [0, 6])
    def test_copy_count_bounds(self, ordering_order, copies):
        with pytest.raises(ValidationError):
            render(ordering_order, DocumentKind.KITCHEN_ORDER, _metadata(copies=copies))
