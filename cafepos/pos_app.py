"""Main Textual app class."""

from __future__ import annotations

import structlog
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.widgets import Header, Static

from cafepos.config import Settings
from cafepos.errors import Outcome
from cafepos.models import OrderStatus, PaymentMethod, Product
from cafepos.notes_modal import NotesModal
from cafepos.payment_modal import PaymentModal
from cafepos.printer import check_printer_dependencies
from cafepos.receipts import DocumentKind
from cafepos.rendering import format_line_item, format_order_header, format_product_label, format_table_label
from cafepos.session import PosSession

logger = structlog.get_logger(__name__)


class PosApp(App):
    """A Textual app for taking table orders, checking out and printing receipts."""

    TITLE = "CoffeeBeer POS"
    SUB_TITLE = "Tables / Orders / Receipts"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #tables-pane {
        width: 1fr;
        border: round $accent;
        padding: 1;
    }

    #cart-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #search-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #search-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 4;
    }

    #results, #cart-list, #tables-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-total {
        text-style: bold;
        margin-top: 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    input_state = reactive("normal")
    query = reactive("")
    selected_index = reactive(0)
    line_selected_index = reactive(None)
    table_selected_index = reactive(0)

    BINDINGS = [
        ("tab", "cycle_results(1)", "Next result"),
        ("up", "cycle_results(-1)", "Previous result"),
        ("down", "cycle_results(1)", "Next result"),
        ("enter", "register_selected", "Add item"),
        ("backspace", "backspace_query", "Delete query char"),
        Binding("ctrl+k", "print_document('kitchen_order')", "Kitchen", priority=True),
        Binding("ctrl+t", "print_document('temporary_receipt')", "Guest check", priority=True),
        Binding("ctrl+r", "print_document('reprint')", "Reprint", priority=True),
        Binding("ctrl+f", "retry_failed_prints", "Retry prints", priority=True),
        ("ctrl+c", "cancel_active_mode", "Exit search"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, session: PosSession, settings: Settings | None = None) -> None:
        super().__init__()
        self.session = session
        self.settings = settings or session.settings
        self.system_status = ""
        logger.info("app_init", api=self.settings.api_base_url)

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="tables-pane"):
                yield Static("Bàn", classes="pane-title")
                yield Static("(loading)", id="tables-list")
            with Vertical(id="cart-pane"):
                yield Static(id="cart-header", classes="pane-title")
                yield Static("(no items yet)", id="cart-list")
                yield Static(id="cart-total")
            with Vertical(id="search-pane"):
                yield Static(id="search-bar")
                yield Static(id="results")

    async def on_mount(self) -> None:
        _, msg = check_printer_dependencies(self.settings)
        self.system_status = msg
        logger.info("on_mount", printer_status=msg)
        self._report(await self.session.load_catalog())
        if self.session.tables:
            self._report(await self.session.open_table(self.session.tables[0]))
            self.line_selected_index = 0 if len(self.session.cart) else None
        self.set_interval(self.settings.refetch_interval, self._refetch)
        self._refresh_all()

    async def on_key(self, event: Key) -> None:
        if isinstance(self.screen, (NotesModal, PaymentModal)):
            return

        if self.input_state == "active":
            if event.is_printable and event.character and event.character.isprintable():
                self.query += event.character
                self.selected_index = 0
                self._refresh_search()
                event.stop()
            return

        if not event.is_printable or not event.character:
            return

        key = event.character.lower()
        handled = True
        if key == "/":
            self.input_state = "active"
            self.query = ""
            self.selected_index = 0
            self._refresh_search()
        elif key == "h":
            await self._move_table_selection(-1)
        elif key == "l":
            await self._move_table_selection(1)
        elif key == "j":
            self._move_line_selection(1)
        elif key == "k":
            self._move_line_selection(-1)
        elif key in {"+", "="}:
            await self._change_selected_quantity(1)
        elif key == "-":
            await self._change_selected_quantity(-1)
        elif key == "d":
            await self._delete_selected_line()
        elif key == "n":
            self._open_notes_for_selected_line()
        elif key == "p":
            self._open_payment()
        elif key == "x":
            self._report(await self.session.update_status(OrderStatus.CANCELLED))
            self._refresh_all()
        else:
            handled = False
        if handled:
            event.stop()

    def action_cancel_active_mode(self) -> None:
        if isinstance(self.screen, (NotesModal, PaymentModal)):
            return
        if self.input_state == "normal":
            return

        self.input_state = "normal"
        self.query = ""
        self.selected_index = 0
        self._refresh_search()

    def action_cycle_results(self, delta: int) -> None:
        if self.input_state != "active":
            return

        results = self._filtered_results()
        if not results:
            self.selected_index = 0
            self._refresh_results(results)
            return
        self.selected_index = (self.selected_index + delta) % len(results)
        self._refresh_results(results)

    async def action_register_selected(self) -> None:
        if isinstance(self.screen, (NotesModal, PaymentModal)):
            return
        if self.input_state != "active":
            return

        results = self._filtered_results()
        if not results:
            return
        product = results[self.selected_index]
        self._report(await self.session.add_product(product))
        self.line_selected_index = self._line_index_of(product.product_id)
        self._refresh_all()

    def action_backspace_query(self) -> None:
        if self.input_state != "active":
            return

        if not self.query:
            return
        self.query = self.query[:-1]
        self.selected_index = 0
        self._refresh_search()

    async def action_print_document(self, kind: str) -> None:
        if isinstance(self.screen, (NotesModal, PaymentModal)):
            return
        self._report(await self.session.print_document(DocumentKind(kind)))
        self._refresh_search()

    async def action_retry_failed_prints(self) -> None:
        self._report(await self.session.retry_failed_prints())
        self._refresh_search()

    async def _refetch(self) -> None:
        self._report(await self.session.refresh())
        self._refresh_cart()

    def _report(self, outcome: Outcome) -> None:
        if outcome.message:
            self.system_status = outcome.message
        if not outcome.notify or not outcome.message:
            return
        if outcome.ok:
            self.notify(outcome.message)
        else:
            self.notify(outcome.message, severity="error")

    def _filtered_results(self) -> list[Product]:
        source = sorted(self.session.catalog.values(), key=lambda product: product.name.lower())
        if not self.query:
            return source
        q = self.query.lower()
        return [product for product in source if q in product.name.lower() or q in product.category.lower()]

    def _refresh_all(self) -> None:
        self._refresh_tables()
        self._refresh_cart()
        self._refresh_search()

    async def _move_table_selection(self, delta: int) -> None:
        tables = self.session.tables
        if not tables:
            return
        self.table_selected_index = (self.table_selected_index + delta) % len(tables)
        self._report(await self.session.open_table(tables[self.table_selected_index]))
        self.line_selected_index = 0 if len(self.session.cart) else None
        self._refresh_all()

    def _move_line_selection(self, delta: int) -> None:
        count = len(self.session.cart)
        if not count:
            return

        if self.line_selected_index is None:
            self.line_selected_index = 0 if delta > 0 else count - 1
        else:
            self.line_selected_index = (self.line_selected_index + delta) % count
        self._refresh_cart()

    def _line_index_of(self, product_id: int) -> int | None:
        for idx, item in enumerate(self.session.cart.items()):
            if item.product_id == product_id:
                return idx
        return None

    def _selected_line(self):
        items = self.session.cart.items()
        if self.line_selected_index is None or not (0 <= self.line_selected_index < len(items)):
            return None
        return items[self.line_selected_index]

    async def _change_selected_quantity(self, delta: int) -> None:
        item = self._selected_line()
        if item is None:
            return
        self._report(await self.session.set_quantity(item.product_id, item.quantity + delta))
        self._refresh_all()

    async def _delete_selected_line(self) -> None:
        item = self._selected_line()
        if item is None:
            return
        self._report(await self.session.remove_item(item.product_id))
        self._refresh_all()

    def _open_notes_for_selected_line(self) -> None:
        item = self._selected_line()
        if item is None:
            return

        def on_dismiss(notes: str | None) -> None:
            if notes is not None:
                self.call_later(self._apply_notes, item.product_id, notes)

        self.push_screen(NotesModal(item, max_length=self.settings.max_note_length), on_dismiss)

    async def _apply_notes(self, product_id: int, notes: str) -> None:
        self._report(await self.session.update_notes(product_id, notes))
        self._refresh_cart()

    def _open_payment(self) -> None:
        if self.session.order is None or self.session.cart.is_empty:
            return

        def on_dismiss(result: tuple | None) -> None:
            if result is not None:
                self.call_later(self._apply_payment, *result)

        self.push_screen(PaymentModal(self.session.cart.total()), on_dismiss)

    async def _apply_payment(self, method: PaymentMethod, discount_percentage) -> None:
        outcome = await self.session.checkout(method, discount_percentage)
        self._report(outcome)
        if outcome.ok:
            self.line_selected_index = None
            # Payment is committed; a failed print below is reported on its own.
            self._report(await self.session.print_document(DocumentKind.CUSTOMER_RECEIPT))
        self._refresh_all()

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            half = rows // 2
            start = selected - half
            start = max(0, start)
            start = min(start, total - rows)

        return (start, start + rows)

    def _refresh_tables(self) -> None:
        try:
            widget = self.query_one("#tables-list", Static)
        except NoMatches:
            return
        tables = self.session.tables
        if not tables:
            widget.update("(no tables)")
            return

        lines = Text()
        for idx, table in enumerate(tables):
            if idx > 0:
                lines.append("\n")
            selected = self.session.table is not None and table.table_id == self.session.table.table_id
            lines.append("➤ " if selected else "  ")
            lines.append_text(format_table_label(table, selected=selected))
        widget.update(lines)

    def _refresh_cart(self) -> None:
        try:
            header = self.query_one("#cart-header", Static)
            cart_widget = self.query_one("#cart-list", Static)
            total_widget = self.query_one("#cart-total", Static)
        except NoMatches:
            return
        header.update(format_order_header(self.session.order, self.session.table))

        items = self.session.cart.items()
        if not items:
            self.line_selected_index = None
            cart_widget.update("(no items yet)")
            total_widget.update("")
            return

        if self.line_selected_index is not None and self.line_selected_index >= len(items):
            self.line_selected_index = len(items) - 1

        visible_rows = self._visible_rows(cart_widget)
        start, end = self._window_bounds(len(items), visible_rows, self.line_selected_index)

        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")

        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            pointer = "➤ " if idx == self.line_selected_index else "  "
            lines.append(pointer)
            lines.append_text(format_line_item(items[idx]))

        if end < len(items):
            lines.append("\n⋮", style="dim")

        cart_widget.update(lines)
        total_widget.update(f"TỔNG: {self.session.cart.total()}")

    def _refresh_search(self) -> None:
        self._refresh_search_bar()
        if self.input_state == "normal":
            self._refresh_results([])
            return
        self._refresh_results(self._filtered_results())

    def _refresh_search_bar(self) -> None:
        try:
            bar = self.query_one("#search-bar", Static)
        except NoMatches:
            return
        if self.input_state == "normal":
            status = Text(self.system_status or "Ready", style="dim")
            help_text = Text("H/L table, / search, J/K line, +/- qty, D delete, N notes, P pay, X cancel\n")
            help_text.append_text(status)
            bar.update(help_text)
            return

        text = Text()
        text.append(" / ", style="bold #ffffff on #2f6db5")
        text.append(f" {self.query}")
        bar.update(text)

    def _refresh_results(self, results: list[Product]) -> None:
        try:
            results_widget = self.query_one("#results", Static)
        except NoMatches:
            return
        if self.input_state == "normal":
            results_widget.update("")
            return

        if not results:
            results_widget.update("No results")
            return

        if self.selected_index >= len(results):
            self.selected_index = 0

        visible_rows = self._visible_rows(results_widget)
        start, end = self._window_bounds(len(results), visible_rows, self.selected_index)

        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")

        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            pointer = "➤ " if idx == self.selected_index else "  "
            lines.append(pointer)
            lines.append_text(format_product_label(results[idx]))

        if end < len(results):
            lines.append("\n⋮", style="dim")

        results_widget.update(lines)
