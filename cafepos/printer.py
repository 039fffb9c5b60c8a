"""Print dispatch: plain-text preview and ESC/POS thermal output."""

from __future__ import annotations

import os
import textwrap
from dataclasses import dataclass
from pathlib import Path
from time import sleep
from typing import Protocol

import structlog

from cafepos.config import Settings
from cafepos.errors import PrintError
from cafepos.receipts import DocumentKind, PrintableDocument

logger = structlog.get_logger(__name__)

# Separator tuning values.
# Keep these grouped so thermal-print behavior can be tuned in one place.
_SECTION_SEPARATOR_HEIGHT_PX = 14
_SECTION_SEPARATOR_THICKNESS_PX = 3
_SECTION_SEPARATOR_STRIPE_HEIGHT_PX = 2
_SECTION_SEPARATOR_PAUSE_SECONDS = 0.05
_RIGHT_GUTTER_PX = 8
# CSS-pixel font sizes from the layout, scaled to 203 dpi printer dots.
_DOTS_PER_FONT_PX = 2
# Extra vertical headroom for full-size lines to avoid descender clipping on thermal output.
_LINE_EXTRA_PX = 10
_TAIL_SPACER_PX = 40
_FONT_OVERRIDE_ENV = "RECEIPT_PRINTER_FONT_PATH"
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Regular.ttf",
)

STYLE_TITLE = "title"
STYLE_NORMAL = "normal"
STYLE_EMPHASIS = "emphasis"
STYLE_SMALL = "small"
STYLE_RULE = "rule"
STYLE_CENTER = "center"


class PrintDispatcher(Protocol):
    def dispatch(self, document: PrintableDocument) -> None: ...


@dataclass(frozen=True)
class PrintLine:
    """One output line: left text, optional right-aligned text and a style."""

    left: str
    right: str = ""
    style: str = STYLE_NORMAL


def document_print_lines(document: PrintableDocument) -> list[PrintLine]:
    """Lay a document out as styled lines shared by the text and raster outputs."""
    lines: list[PrintLine] = []
    if document.reprint_marker:
        lines.append(PrintLine(document.reprint_marker, style=STYLE_CENTER))
    lines.append(PrintLine(document.title, style=STYLE_TITLE))
    lines.append(PrintLine(document.subtitle, style=STYLE_CENTER))
    lines.append(PrintLine("", style=STYLE_RULE))

    for label, value in document.info:
        lines.append(PrintLine(f"{label}: {value}", style=STYLE_SMALL))
    lines.append(PrintLine("", style=STYLE_RULE))

    priced = document.kind is not DocumentKind.KITCHEN_ORDER
    if document.columns:
        lines.append(PrintLine(document.columns[0], " ".join(document.columns[1:]), style=STYLE_EMPHASIS))
    for row in document.rows:
        if priced and row.amount is not None:
            lines.append(PrintLine(f"{row.quantity} x {row.name}", row.amount.format()))
        else:
            lines.append(PrintLine(row.name, f"x{row.quantity}", style=STYLE_EMPHASIS))
        if row.notes:
            for note_line in textwrap.wrap(row.notes, width=max(10, document.layout.chars_per_line - 4)):
                lines.append(PrintLine(f"  * {note_line}", style=STYLE_SMALL))

    if document.totals:
        lines.append(PrintLine("", style=STYLE_RULE))
        for total_line in document.totals:
            if total_line.amount is not None:
                value = total_line.amount.format()
                if total_line.negative:
                    value = f"-{value}"
            else:
                value = total_line.text or ""
            style = STYLE_EMPHASIS if total_line.emphasis else STYLE_NORMAL
            lines.append(PrintLine(f"{total_line.label}:", value, style=style))

    lines.append(PrintLine("", style=STYLE_RULE))
    for footer_line in document.footer:
        lines.append(PrintLine(footer_line, style=STYLE_CENTER))
    return lines


def _fit_text(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return f"{text[: width - 3]}..."


def format_document_lines(document: PrintableDocument) -> list[str]:
    """Fixed-width text rendition, ``layout.chars_per_line`` columns wide."""
    width = document.layout.chars_per_line
    output: list[str] = []
    for line in document_print_lines(document):
        if line.style == STYLE_RULE:
            output.append("-" * width)
            continue
        if line.style in {STYLE_TITLE, STYLE_CENTER}:
            output.append(_fit_text(line.left, width).center(width).rstrip())
            continue
        if not line.right:
            output.append(_fit_text(line.left, width))
            continue
        right = _fit_text(line.right, width)
        left_room = max(0, width - len(right) - 1)
        left = _fit_text(line.left, left_room)
        output.append(f"{left}{' ' * (width - len(left) - len(right))}{right}")
    return output


class PreviewPrintDispatcher:
    """Collects formatted copies in memory; used for on-screen preview and tests."""

    def __init__(self) -> None:
        self.printed: list[list[str]] = []

    def dispatch(self, document: PrintableDocument) -> None:
        lines = format_document_lines(document)
        for _ in range(document.copies):
            self.printed.append(list(lines))


def resolve_printer_font_path(configured_path: str) -> str:
    """
    Resolve a printer font path.

    Resolution order:
    1. RECEIPT_PRINTER_FONT_PATH (if set)
    2. the configured path
    3. Known Linux fallbacks
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates: list[str] = []
    if env_override:
        candidates.append(env_override)
    candidates.append(configured_path)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise PrintError(
        f"No usable printer font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def check_printer_dependencies(settings: Settings) -> tuple[bool, str]:
    """Check whether printer dependencies are importable and a font resolves."""
    try:
        from escpos.printer import Usb  # noqa: F401
        from PIL import ImageFont

        font_path = resolve_printer_font_path(settings.printer_font_path)
        ImageFont.truetype(font_path, 20)
    except Exception as exc:
        return (False, f"Printer deps unavailable: {exc}")
    return (True, "Printer ready")


def _render_line(line: PrintLine, font: object, width_px: int, left_indent_px: int) -> object:
    from PIL import Image, ImageDraw

    probe = Image.new("1", (1, 1), color=1)
    probe_draw = ImageDraw.Draw(probe)
    sample_bbox = probe_draw.textbbox((0, 0), "Ay", font=font)
    text_height = sample_bbox[3] - sample_bbox[1]
    canvas_height = text_height + _LINE_EXTRA_PX

    img = Image.new("1", (width_px, canvas_height), color=1)
    draw = ImageDraw.Draw(img)
    # Offset by bbox top so descenders (g, y, p, etc.) are not clipped.
    y = (canvas_height - text_height) // 2 - sample_bbox[1]

    right_width = 0
    if line.right:
        right_bbox = draw.textbbox((0, 0), line.right, font=font)
        right_width = right_bbox[2] - right_bbox[0]
        draw.text((width_px - _RIGHT_GUTTER_PX - right_width - right_bbox[0], y), line.right, font=font, fill=0)

    max_left = width_px - left_indent_px - _RIGHT_GUTTER_PX - (right_width + 12 if right_width else 0)
    left = _fit_text_to_px(line.left, font, max_left)
    if line.style in {STYLE_TITLE, STYLE_CENTER}:
        left_bbox = draw.textbbox((0, 0), left, font=font)
        x = (width_px - (left_bbox[2] - left_bbox[0])) // 2
    else:
        x = left_indent_px
    draw.text((x, y), left, font=font, fill=0)
    return img


def _render_spacer(height_px: int, width_px: int) -> object:
    from PIL import Image

    return Image.new("1", (width_px, max(1, height_px)), color=1)


def _fit_text_to_px(text: str, font: object, max_width_px: int) -> str:
    from PIL import Image, ImageDraw

    probe = Image.new("1", (1, 1), color=1)
    draw = ImageDraw.Draw(probe)
    if draw.textbbox((0, 0), text, font=font)[2] <= max_width_px:
        return text
    ellipsis = "..."
    trimmed = text
    while trimmed:
        candidate = f"{trimmed}{ellipsis}"
        if draw.textbbox((0, 0), candidate, font=font)[2] <= max_width_px:
            return candidate
        trimmed = trimmed[:-1]
    return ellipsis


def _render_section_separator(width_px: int) -> object:
    from PIL import Image, ImageDraw

    img = Image.new("1", (width_px, _SECTION_SEPARATOR_HEIGHT_PX), color=1)
    draw = ImageDraw.Draw(img)
    top = max(0, (_SECTION_SEPARATOR_HEIGHT_PX - _SECTION_SEPARATOR_THICKNESS_PX) // 2)
    bottom = min(_SECTION_SEPARATOR_HEIGHT_PX - 1, top + _SECTION_SEPARATOR_THICKNESS_PX - 1)
    draw.rectangle((0, top, width_px - 1, bottom), fill=0)
    return img


def _print_section_separator(printer: object, width_px: int) -> None:
    """
    Print the separator in short stripes with tiny pauses.

    This reduces instantaneous heat so the line stays crisp
    instead of bleeding into adjacent dots.
    """
    separator = _render_section_separator(width_px)
    for top in range(0, separator.height, _SECTION_SEPARATOR_STRIPE_HEIGHT_PX):
        bottom = min(separator.height, top + _SECTION_SEPARATOR_STRIPE_HEIGHT_PX)
        stripe = separator.crop((0, top, width_px, bottom))
        printer.image(stripe)
        if bottom < separator.height:
            sleep(_SECTION_SEPARATOR_PAUSE_SECONDS)


class EscposPrintDispatcher:
    """USB ESC/POS printer; every line is rasterised with Pillow."""

    def __init__(self, settings: Settings, printer: object | None = None) -> None:
        self.settings = settings
        self._printer = printer

    def _open_printer(self) -> object:
        if self._printer is not None:
            return self._printer
        try:
            from escpos.printer import Usb
        except Exception as exc:
            raise PrintError(f"Printer dependencies unavailable: {exc}") from exc
        try:
            return Usb(self.settings.printer_vendor_id, self.settings.printer_product_id)
        except Exception as exc:
            raise PrintError(f"Printer not reachable: {exc}") from exc

    def _load_fonts(self, document: PrintableDocument) -> dict[str, object]:
        try:
            from PIL import ImageFont
        except Exception as exc:
            raise PrintError(f"Printer dependencies unavailable: {exc}") from exc

        layout = document.layout
        font_path = resolve_printer_font_path(self.settings.printer_font_path)
        try:
            title = ImageFont.truetype(font_path, layout.title_font_size * _DOTS_PER_FONT_PX)
            normal = ImageFont.truetype(font_path, layout.normal_font_size * _DOTS_PER_FONT_PX)
            small = ImageFont.truetype(font_path, layout.small_font_size * _DOTS_PER_FONT_PX)
        except OSError as exc:
            raise PrintError(f"Cannot load printer font {font_path}: {exc}") from exc
        return {
            STYLE_TITLE: title,
            STYLE_NORMAL: normal,
            STYLE_EMPHASIS: normal,
            STYLE_CENTER: small,
            STYLE_SMALL: small,
        }

    def dispatch(self, document: PrintableDocument) -> None:
        """Print ``document.copies`` tickets, cutting after each one."""
        fonts = self._load_fonts(document)
        printer = self._open_printer()
        layout = document.layout
        lines = document_print_lines(document)

        try:
            for copy_index in range(document.copies):
                for line in lines:
                    if line.style == STYLE_RULE:
                        _print_section_separator(printer, layout.width_px)
                        continue
                    printer.image(_render_line(line, fonts[line.style], layout.width_px, layout.left_indent_px))
                printer.image(_render_spacer(_TAIL_SPACER_PX, layout.width_px))
                printer.cut()
                logger.info("print_copy_done", kind=document.kind.value, copy=copy_index + 1, copies=document.copies)
        except PrintError:
            raise
        except Exception as exc:
            raise PrintError(f"Printing failed: {exc}") from exc
