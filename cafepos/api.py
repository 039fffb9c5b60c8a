"""Order API boundary: protocol, JSON codecs and the requests-based HTTP client."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Protocol

import requests
import structlog

from cafepos.config import API_BASE_URL, API_TIMEOUT_SECONDS
from cafepos.constant import MESSAGES, UNKNOWN_PRODUCT_NAME
from cafepos.errors import NetworkError, NotFoundError, PosError, StateError, ValidationError
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
from cafepos.pricing import format_percentage, normalize_discount_percentage

logger = structlog.get_logger(__name__)

# Server messages that mean "the order is no longer Ordering".
_STATE_ERROR_MARKERS = (
    "not in ordering state",
    "already been paid",
    "cancelled order",
    "without payment record",
)


class OrderApi(Protocol):
    def get_products(self) -> list[Product]: ...

    def get_tables(self) -> list[Table]: ...

    def get_orders(self) -> list[Order]: ...

    def get_order(self, order_id: int) -> Order: ...

    def create_order(self, table_id: int) -> Order: ...

    def add_order_item(self, order_id: int, item: ItemRequest) -> Order: ...

    def update_order_item(self, order_id: int, item_id: int, quantity: int, notes: str = "") -> Order: ...

    def delete_order_item(self, order_id: int, item_id: int) -> ItemRemoval: ...

    def update_order_status(self, order_id: int, status: OrderStatus) -> StatusChange: ...

    def create_payment(self, request: PaymentRequest) -> Payment: ...


def parse_datetime(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning("unparsable_datetime", value=str(value))
        return None


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _optional_money(value: object) -> Money | None:
    if value is None:
        return None
    return Money.parse(value)


def _percentage(value: object) -> Decimal | None:
    pct = normalize_discount_percentage(value)
    return pct if pct > 0 else None


def line_item_from_payload(data: dict[str, Any]) -> LineItem:
    return LineItem(
        product_id=int(data["productId"]),
        product_name=data.get("productName") or UNKNOWN_PRODUCT_NAME,
        unit_price=Money.parse(data.get("unitPrice", data.get("price", 0))),
        quantity=int(data.get("quantity", 1)),
        notes=data.get("notes") or "",
        item_id=int(data["id"]) if data.get("id") is not None else None,
    )


def line_item_to_payload(item: LineItem) -> dict[str, Any]:
    return {
        "id": item.item_id,
        "productId": item.product_id,
        "productName": item.product_name,
        "quantity": item.quantity,
        "unitPrice": item.unit_price.amount,
        "subtotal": item.subtotal.amount,
        "notes": item.notes,
    }


def order_from_payload(data: dict[str, Any]) -> Order:
    """Decode an order from either ``{"order": {...}, "items": [...]}`` or a flat object."""
    if isinstance(data.get("order"), dict):
        inner = dict(data["order"])
        if "items" not in inner and isinstance(data.get("items"), list):
            inner["items"] = data["items"]
        data = inner

    items = tuple(line_item_from_payload(item) for item in data.get("items") or [])
    method = data.get("paymentMethod") or data.get("paymentType")
    status = OrderStatus(data.get("status") or OrderStatus.ORDERING.value)
    total = data.get("totalAmount")
    return Order(
        id=int(data["id"]) if data.get("id") is not None else None,
        table_id=int(data.get("tableId") or 0),
        table_name=data.get("tableName") or "",
        items=items,
        total_amount=Money.parse(total) if total is not None else Money(sum(i.subtotal.amount for i in items)),
        status=status,
        order_date=parse_datetime(data.get("orderDate")),
        payment_date=parse_datetime(data.get("paymentDate")),
        payment_method=PaymentMethod(method) if method else None,
        discount_percentage=_percentage(data.get("discountPercentage")),
        discount_amount=_optional_money(data.get("discountAmount")),
        original_amount=_optional_money(data.get("originalAmount")),
    )


def order_to_payload(order: Order) -> dict[str, Any]:
    """Encode an order in the server's camelCase shape; absent optionals are omitted."""
    payload: dict[str, Any] = {
        "id": order.id,
        "tableId": order.table_id,
        "tableName": order.table_name,
        "status": order.status.value,
        "totalAmount": order.total_amount.amount,
        "orderDate": format_datetime(order.order_date),
        "items": [line_item_to_payload(item) for item in order.items],
    }
    if order.payment_date is not None:
        payload["paymentDate"] = format_datetime(order.payment_date)
    if order.payment_method is not None:
        payload["paymentMethod"] = order.payment_method.value
    if order.discount_percentage:
        payload["discountPercentage"] = format_percentage(order.discount_percentage)
    if order.discount_amount is not None:
        payload["discountAmount"] = order.discount_amount.amount
    if order.original_amount is not None:
        payload["originalAmount"] = order.original_amount.amount
    return payload


def product_from_payload(data: dict[str, Any]) -> Product:
    return Product(
        product_id=int(data["id"]),
        name=data.get("productName") or UNKNOWN_PRODUCT_NAME,
        unit_price=Money.parse(data.get("unitPrice", 0)),
        category=data.get("categoryName") or "",
    )


def table_from_payload(data: dict[str, Any]) -> Table:
    return Table(
        table_id=int(data["id"]),
        name=data.get("tableName") or str(data["id"]),
        capacity=int(data.get("seatingCapacity") or 4),
        has_active_order=bool(data.get("hasActiveOrder")),
    )


def payment_from_payload(data: dict[str, Any]) -> Payment:
    return Payment(
        payment_id=int(data["id"]) if data.get("id") is not None else None,
        order_id=int(data.get("orderId") or data.get("OrderID")),
        payment_type=PaymentMethod(data.get("paymentType") or data.get("PaymentType")),
        amount=Money.parse(data.get("amount", 0)),
        discount_percentage=normalize_discount_percentage(data.get("discountPercentage")),
        discount_amount=Money.parse(data.get("discountAmount", 0)),
        original_amount=Money.parse(data.get("originalAmount", 0)),
        payment_date=parse_datetime(data.get("paymentDate")),
    )


def payment_request_payload(request: PaymentRequest) -> dict[str, Any]:
    """Build the payment body; a zero discount is omitted rather than sent as 0."""
    payload: dict[str, Any] = {
        "OrderID": request.order_id,
        "PaymentType": PaymentMethod(request.payment_type).value,
    }
    pct = normalize_discount_percentage(request.discount_percentage)
    if pct > 0:
        payload["discountPercentage"] = float(pct)
    return payload


def error_from_response(status_code: int, message: str, path: str) -> PosError:
    """Map an HTTP failure onto the error taxonomy."""
    lowered = message.lower()
    if status_code == 404:
        return NotFoundError(message or "Not found", status_code=status_code, path=path)
    if status_code in {400, 409, 422}:
        if any(marker in lowered for marker in _STATE_ERROR_MARKERS):
            return StateError(message, status_code=status_code, path=path)
        return ValidationError(message or "Invalid request", status_code=status_code, path=path)
    return NetworkError(message or f"Server error ({status_code})", status_code=status_code, path=path)


class HttpOrderApi:
    """Blocking client for the order-management REST API."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: str | None = None,
        timeout: float = API_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = f"{base_url.rstrip('/')}/api"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.warning("api_unreachable", method=method, path=path, error=str(exc))
            raise NetworkError(MESSAGES["network"], path=path) from exc
        except requests.RequestException as exc:
            raise NetworkError(f"Request failed: {exc}", path=path) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            message = body.get("message", "") if isinstance(body, dict) else ""
            logger.info("api_error", method=method, path=path, status_code=response.status_code, message=message)
            raise error_from_response(response.status_code, message, path)

        if isinstance(body, dict) and body.get("status") == "success" and "data" in body:
            return body["data"]
        return body

    def get_products(self) -> list[Product]:
        return [product_from_payload(item) for item in self._request("GET", "/products") or []]

    def get_tables(self) -> list[Table]:
        return [table_from_payload(item) for item in self._request("GET", "/tables") or []]

    def get_orders(self) -> list[Order]:
        return [order_from_payload(item) for item in self._request("GET", "/orders") or []]

    def get_order(self, order_id: int) -> Order:
        return order_from_payload(self._request("GET", f"/orders/{order_id}"))

    def create_order(self, table_id: int) -> Order:
        created = self._request("POST", "/orders", {"tableId": table_id})
        return self.get_order(int(created["id"]))

    def add_order_item(self, order_id: int, item: ItemRequest) -> Order:
        self._request(
            "POST",
            f"/orders/{order_id}/items",
            {"productId": item.product_id, "quantity": item.quantity, "notes": item.notes or None},
        )
        return self.get_order(order_id)

    def update_order_item(self, order_id: int, item_id: int, quantity: int, notes: str = "") -> Order:
        self._request(
            "PUT",
            f"/orders/{order_id}/items/{item_id}",
            {"quantity": quantity, "notes": notes or None},
        )
        return self.get_order(order_id)

    def delete_order_item(self, order_id: int, item_id: int) -> ItemRemoval:
        body = self._request("DELETE", f"/orders/{order_id}/items/{item_id}") or {}
        return ItemRemoval(
            order=self.get_order(order_id),
            order_cancelled=bool(body.get("orderCancelled")),
            remaining_items=int(body.get("remainingItems") or 0),
        )

    def update_order_status(self, order_id: int, status: OrderStatus) -> StatusChange:
        body = self._request("PUT", f"/orders/{order_id}/status", {"status": OrderStatus(status).value}) or {}
        return StatusChange(order=self.get_order(order_id), already_in_status=bool(body.get("alreadyInStatus")))

    def create_payment(self, request: PaymentRequest) -> Payment:
        return payment_from_payload(self._request("POST", "/payments", payment_request_payload(request)))
