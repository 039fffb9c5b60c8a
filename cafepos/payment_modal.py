"""Payment entry modal screen."""

from __future__ import annotations

from decimal import Decimal

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from cafepos.constant import PAYMENT_METHOD_LABELS
from cafepos.errors import ValidationError
from cafepos.models import PaymentMethod
from cafepos.money import Money
from cafepos.pricing import apply_discount, validate_discount_percentage
from cafepos.rendering import format_breakdown

_METHOD_KEYS = {
    "1": PaymentMethod.CASH,
    "2": PaymentMethod.CARD,
    "3": PaymentMethod.BANKING,
}


class PaymentModal(ModalScreen[tuple[PaymentMethod, Decimal] | None]):
    """Pick a payment method and discount, previewing the final amount before confirming."""

    CSS = """
    PaymentModal {
        align: center middle;
        background: $background 60%;
    }

    #payment-dialog {
        width: 56;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #payment-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #payment-methods {
        color: white;
        margin-bottom: 1;
    }

    #payment-discount {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #payment-preview {
        color: white;
        margin-bottom: 1;
    }

    #payment-error {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #payment-help {
        color: #dddddd;
    }
    """

    def __init__(self, amount: Money) -> None:
        super().__init__()
        self.amount = amount
        self.method: PaymentMethod | None = PaymentMethod.CASH
        self.discount = ""
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="payment-dialog"):
            yield Static("Thanh toán", id="payment-title")
            yield Static(id="payment-methods")
            yield Static(id="payment-discount")
            yield Static(id="payment-preview")
            yield Static(id="payment-error")
            yield Static(
                "F1/F2/F3 method. Digits and '.' discount %. Enter confirm. Esc/Ctrl+C cancel.",
                id="payment-help",
            )

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "enter":
            self._confirm()
            event.stop()
            return

        if event.key in {"f1", "f2", "f3"}:
            self.method = _METHOD_KEYS[event.key[1]]
            self.error = ""
            self._refresh_content()
            event.stop()
            return

        if event.key == "backspace":
            if self.discount:
                self.discount = self.discount[:-1]
                self.error = ""
                self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character and (event.character.isdigit() or event.character == "."):
            if len(self.discount) < 6:
                self.discount += event.character
            self.error = ""
            self._refresh_content()
            event.stop()

    def _confirm(self) -> None:
        if self.method is None:
            self.error = "Chọn phương thức thanh toán."
            self._refresh_content()
            return
        try:
            pct = validate_discount_percentage(self.discount)
        except ValidationError as exc:
            self.error = exc.message
            self._refresh_content()
            return
        self.dismiss((self.method, pct))

    def _refresh_content(self) -> None:
        methods = Text()
        for key, method in _METHOD_KEYS.items():
            marker = "(•)" if method is self.method else "( )"
            style = "bold white" if method is self.method else "white"
            methods.append(f"F{key} {marker} {PAYMENT_METHOD_LABELS[method.value]}  ", style=style)
        self.query_one("#payment-methods", Static).update(methods)
        self.query_one("#payment-discount", Static).update(f"Giảm giá (%): {self.discount}|")
        self.query_one("#payment-preview", Static).update(format_breakdown(apply_discount(self.amount, self.discount), self.method))
        self.query_one("#payment-error", Static).update(self.error or "")
