"""Runtime configuration defaults for the API client, business limits and printing."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

API_BASE_URL = "http://localhost:3000"
API_TIMEOUT_SECONDS = 10.0
ORDERS_REFETCH_INTERVAL_SECONDS = 10.0

DB_PATH = "data/cafepos.db"
DEBUG_LOG_PATH = "/tmp/cafepos-debug.log"

DEFAULT_CASHIER_NAME = "Thu ngân"

MIN_DISCOUNT_PERCENT = 0
MAX_DISCOUNT_PERCENT = 100
MAX_ITEMS_PER_ORDER = 50
MAX_QUANTITY_PER_ITEM = 100
MAX_NOTE_LENGTH = 500
MIN_PRINT_COPIES = 1
MAX_PRINT_COPIES = 5

# 80mm thermal roll, 576 dots at 203 dpi.
PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 576
PRINTER_FONT_PATH = "/System/Library/Fonts/SFNS.ttf"
PRINTER_LEFT_INDENT_PX = 8
PAPER_WIDTH_MM = 80
PAPER_MARGIN_MM = 5
PAPER_CHARS_PER_LINE = 42
TITLE_FONT_SIZE = 16
NORMAL_FONT_SIZE = 12
SMALL_FONT_SIZE = 11
TINY_FONT_SIZE = 10


@dataclass(frozen=True)
class Settings:
    """Per-session configuration, built from the module defaults."""

    api_base_url: str = API_BASE_URL
    api_token: str | None = None
    api_timeout: float = API_TIMEOUT_SECONDS
    refetch_interval: float = ORDERS_REFETCH_INTERVAL_SECONDS
    db_path: str = DB_PATH
    debug_log_path: str = DEBUG_LOG_PATH
    cashier_name: str = DEFAULT_CASHIER_NAME
    max_items_per_order: int = MAX_ITEMS_PER_ORDER
    max_quantity_per_item: int = MAX_QUANTITY_PER_ITEM
    max_note_length: int = MAX_NOTE_LENGTH
    printer_vendor_id: int = PRINTER_USB_VENDOR_ID
    printer_product_id: int = PRINTER_USB_PRODUCT_ID
    printer_font_path: str = PRINTER_FONT_PATH

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings, letting CAFEPOS_* environment variables override defaults."""
        env = os.environ if environ is None else environ
        settings = cls()
        overrides: dict[str, object] = {}

        if env.get("CAFEPOS_API_URL", "").strip():
            overrides["api_base_url"] = env["CAFEPOS_API_URL"].strip().rstrip("/")
        if env.get("CAFEPOS_API_TOKEN", "").strip():
            overrides["api_token"] = env["CAFEPOS_API_TOKEN"].strip()
        if env.get("CAFEPOS_DB_PATH", "").strip():
            overrides["db_path"] = env["CAFEPOS_DB_PATH"].strip()
        if env.get("CAFEPOS_DEBUG_LOG", "").strip():
            overrides["debug_log_path"] = env["CAFEPOS_DEBUG_LOG"].strip()
        if env.get("CAFEPOS_CASHIER", "").strip():
            overrides["cashier_name"] = env["CAFEPOS_CASHIER"].strip()
        if env.get("CAFEPOS_PRINTER_VENDOR_ID", "").strip():
            overrides["printer_vendor_id"] = int(env["CAFEPOS_PRINTER_VENDOR_ID"], 16)
        if env.get("CAFEPOS_PRINTER_PRODUCT_ID", "").strip():
            overrides["printer_product_id"] = int(env["CAFEPOS_PRINTER_PRODUCT_ID"], 16)
        if env.get("RECEIPT_PRINTER_FONT_PATH", "").strip():
            overrides["printer_font_path"] = env["RECEIPT_PRINTER_FONT_PATH"].strip()

        if not overrides:
            return settings
        return replace(settings, **overrides)
