"""Tests for the HTTP order client and its payload codecs."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import requests

from cafepos.api import HttpOrderApi, order_from_payload, order_to_payload, payment_request_payload
from cafepos.constant import MESSAGES
from cafepos.errors import NetworkError, NotFoundError, StateError, ValidationError
from cafepos.models import ItemRequest, OrderStatus, PaymentMethod, PaymentRequest
from cafepos.money import Money

ORDER_DETAIL = {
    "order": {
        "id": 7,
        "tableId": 1,
        "tableName": "Bàn 1",
        "status": "Ordering",
        "totalAmount": "110000.00",
        "orderDate": "2026-03-14T02:30:00.000Z",
    },
    "items": [
        {"id": 11, "productId": 1, "productName": "Cà phê sữa", "quantity": 1, "unitPrice": "50000.00", "notes": None},
        {"id": 12, "productId": 2, "productName": "Bia Saigon", "quantity": 2, "unitPrice": "30000.00", "notes": "ít đá"},
    ],
    "summary": {"itemCount": 2},
}


class StubResponse:
    def __init__(self, status_code: int, body) -> None:
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class StubSession:
    """Stands in for ``requests.Session``; replies are queued per call."""

    def __init__(self, *responses) -> None:
        self.headers: dict[str, str] = {}
        self.responses = list(responses)
        self.requests: list[tuple[str, str, object]] = []

    def request(self, method, url, json=None, timeout=None):
        self.requests.append((method, url, json))
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _ok(data, status_code: int = 200) -> StubResponse:
    return StubResponse(status_code, {"status": "success", "data": data})


def _fail(status_code: int, message: str) -> StubResponse:
    return StubResponse(status_code, {"status": "fail", "message": message})


class TestCodecs:
    def test_order_from_nested_payload(self):
        order = order_from_payload(ORDER_DETAIL)

        assert order.id == 7
        assert order.status is OrderStatus.ORDERING
        assert order.total_amount == Money(110000)
        assert [item.item_id for item in order.items] == [11, 12]
        assert order.items[0].notes == ""
        assert order.order_date == datetime(2026, 3, 14, 2, 30, tzinfo=timezone.utc)

    def test_order_from_flat_list_entry(self):
        order = order_from_payload(
            {
                "id": 9,
                "tableId": 2,
                "status": "Paid",
                "totalAmount": 93500,
                "paymentType": "Card",
                "discountPercentage": "15.00",
                "paymentDate": "2026-03-14T02:31:05Z",
            }
        )
        assert order.payment_method is PaymentMethod.CARD
        assert order.discount_percentage == Decimal("15")
        assert order.items == ()

    def test_zero_discount_decodes_as_none(self):
        order = order_from_payload({"id": 1, "tableId": 1, "status": "Paid", "discountPercentage": 0})
        assert order.discount_percentage is None

    def test_order_round_trip(self, paid_order):
        decoded = order_from_payload(order_to_payload(paid_order))

        assert decoded.items == paid_order.items
        assert decoded.total_amount == paid_order.total_amount
        assert decoded.discount_percentage == paid_order.discount_percentage
        assert decoded.discount_amount == paid_order.discount_amount
        assert decoded.payment_date == paid_order.payment_date

    def test_payment_payload_omits_zero_discount(self):
        assert payment_request_payload(PaymentRequest(order_id=7, payment_type=PaymentMethod.CASH)) == {
            "OrderID": 7,
            "PaymentType": "Cash",
        }
        with_discount = payment_request_payload(
            PaymentRequest(order_id=7, payment_type=PaymentMethod.BANKING, discount_percentage=Decimal("12.5"))
        )
        assert with_discount["discountPercentage"] == 12.5


class TestHttpOrderApi:
    def test_sends_bearer_token_and_unwraps_envelope(self):
        session = StubSession(_ok(ORDER_DETAIL))
        api = HttpOrderApi("http://pos.local/", token="secret", session=session)

        order = api.get_order(7)

        assert session.headers["Authorization"] == "Bearer secret"
        assert session.requests == [("GET", "http://pos.local/api/orders/7", None)]
        assert order.table_name == "Bàn 1"

    def test_add_item_is_followed_by_refetch(self):
        session = StubSession(_ok({"id": 12}, status_code=201), _ok(ORDER_DETAIL))
        api = HttpOrderApi("http://pos.local", session=session)

        order = api.add_order_item(7, ItemRequest(product_id=2, quantity=1))

        assert session.requests[0] == ("POST", "http://pos.local/api/orders/7/items", {"productId": 2, "quantity": 1, "notes": None})
        assert session.requests[1][0] == "GET"
        assert order.find_item(2).quantity == 2

    def test_delete_reports_auto_cancel(self):
        cancelled = {"order": dict(ORDER_DETAIL["order"], status="Cancelled"), "items": []}
        session = StubSession(
            StubResponse(200, {"status": "success", "orderCancelled": True, "remainingItems": 0}),
            _ok(cancelled),
        )
        removal = HttpOrderApi(session=session).delete_order_item(7, 12)

        assert removal.order_cancelled
        assert removal.order.status is OrderStatus.CANCELLED

    def test_repeated_status_is_flagged(self):
        session = StubSession(
            StubResponse(200, {"status": "success", "alreadyInStatus": True}),
            _ok(ORDER_DETAIL),
        )
        change = HttpOrderApi(session=session).update_order_status(7, OrderStatus.ORDERING)
        assert change.already_in_status
        assert session.requests[0][2] == {"status": "Ordering"}

    def test_create_payment(self):
        session = StubSession(
            _ok(
                {
                    "id": 3,
                    "orderId": 7,
                    "paymentType": "Card",
                    "amount": 93500,
                    "discountPercentage": 15,
                    "discountAmount": 16500,
                    "originalAmount": 110000,
                    "paymentDate": "2026-03-14T02:31:05Z",
                    "orderStatus": "Paid",
                },
                status_code=201,
            )
        )
        payment = HttpOrderApi(session=session).create_payment(
            PaymentRequest(order_id=7, payment_type=PaymentMethod.CARD, discount_percentage=Decimal("15"))
        )
        assert payment.amount == Money(93500)
        assert payment.discount_amount == Money(16500)
        assert session.requests[0][2] == {"OrderID": 7, "PaymentType": "Card", "discountPercentage": 15.0}

    @pytest.mark.parametrize(
        ("response", "error"),
        [
            (_fail(404, "Order not found"), NotFoundError),
            (_fail(400, "Order is not in ordering state"), StateError),
            (_fail(400, "Order has already been paid"), StateError),
            (_fail(400, "Quantity must be at least 1"), ValidationError),
            (_fail(401, "Unauthorized"), NetworkError),
            (StubResponse(502, None), NetworkError),
        ],
    )
    def test_error_mapping(self, response, error):
        api = HttpOrderApi(session=StubSession(response))
        with pytest.raises(error):
            api.get_order(7)

    @pytest.mark.parametrize("exc", [requests.ConnectionError("refused"), requests.Timeout("slow")])
    def test_transport_failures_are_network_errors(self, exc):
        api = HttpOrderApi(session=StubSession(exc))
        with pytest.raises(NetworkError) as raised:
            api.get_products()
        assert raised.value.message == MESSAGES["network"]
