"""Notes modal screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from cafepos.config import MAX_NOTE_LENGTH
from cafepos.models import LineItem
from cafepos.rendering import format_line_item


class NotesModal(ModalScreen[str | None]):
    """Centered modal to edit the free-text note of one cart line.

    Dismisses with the new note text, or ``None`` when cancelled.
    """

    CSS = """
    NotesModal {
        align: center middle;
        background: $background 60%;
    }

    #notes-dialog {
        width: 64;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #notes-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #notes-body {
        margin-bottom: 1;
        color: white;
    }

    #notes-value {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
    }

    #notes-help {
        margin-top: 1;
        color: #dddddd;
    }
    """

    def __init__(self, item: LineItem, max_length: int = MAX_NOTE_LENGTH) -> None:
        super().__init__()
        self.item = item
        self.max_length = max_length
        self.value = item.notes or ""

    def compose(self) -> ComposeResult:
        with Container(id="notes-dialog"):
            yield Static("Ghi chú", id="notes-title")
            yield Static(id="notes-body")
            yield Static(id="notes-value")
            yield Static(id="notes-help")

    def on_mount(self) -> None:
        self.query_one("#notes-body", Static).update(format_line_item(self.item))
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "enter":
            self.dismiss(self.value.strip())
            event.stop()
            return

        if event.key == "backspace":
            if self.value:
                self.value = self.value[:-1]
            self._refresh_content()
            event.stop()
            return

        if event.key == "ctrl+u":
            self.value = ""
            self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character:
            if len(self.value) < self.max_length:
                self.value += event.character
            self._refresh_content()
            event.stop()
            return

        # Ignore all non-text keys while typing.
        event.stop()

    def _refresh_content(self) -> None:
        value = Text(style="bold white")
        value.append(f"{self.value}|")
        self.query_one("#notes-value", Static).update(value)
        self.query_one("#notes-help", Static).update(
            f"{len(self.value)}/{self.max_length}. Enter save, Ctrl+U clear, Esc/Ctrl+C cancel"
        )
