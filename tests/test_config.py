"""Tests for settings, environment overrides and log setup."""

import json

import structlog

from cafepos.config import DB_PATH, DEFAULT_CASHIER_NAME, Settings
from cafepos.logs import configure_logging


def test_defaults_without_environment():
    settings = Settings.from_env({})
    assert settings == Settings()
    assert settings.db_path == DB_PATH
    assert settings.cashier_name == DEFAULT_CASHIER_NAME
    assert settings.refetch_interval == 10.0


def test_environment_overrides():
    settings = Settings.from_env(
        {
            "CAFEPOS_API_URL": "https://pos.example.vn/",
            "CAFEPOS_API_TOKEN": " token ",
            "CAFEPOS_DB_PATH": "/var/lib/cafepos/journal.db",
            "CAFEPOS_CASHIER": "Minh",
            "CAFEPOS_PRINTER_VENDOR_ID": "0x04b8",
            "CAFEPOS_PRINTER_PRODUCT_ID": "0202",
            "RECEIPT_PRINTER_FONT_PATH": "/fonts/Roboto.ttf",
        }
    )
    assert settings.api_base_url == "https://pos.example.vn"
    assert settings.api_token == "token"
    assert settings.db_path == "/var/lib/cafepos/journal.db"
    assert settings.cashier_name == "Minh"
    assert settings.printer_vendor_id == 0x04B8
    assert settings.printer_product_id == 0x0202
    assert settings.printer_font_path == "/fonts/Roboto.ttf"


def test_blank_values_are_ignored():
    assert Settings.from_env({"CAFEPOS_API_URL": "   ", "CAFEPOS_CASHIER": ""}) == Settings()


def test_logging_writes_json_lines(tmp_path):
    log_path = tmp_path / "logs" / "debug.log"
    configure_logging(str(log_path))
    try:
        structlog.get_logger("cafepos.test").info("order_auto_cancelled", order_id=7)
    finally:
        structlog.reset_defaults()

    record = json.loads(log_path.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert record["event"] == "order_auto_cancelled"
    assert record["order_id"] == 7
    assert record["level"] == "info"
    assert "timestamp" in record
