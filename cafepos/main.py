"""Entry point for the cafepos Textual app."""

from __future__ import annotations

import structlog

from cafepos.api import HttpOrderApi
from cafepos.config import Settings
from cafepos.logs import configure_logging
from cafepos.persistence import PrintJournal
from cafepos.pos_app import PosApp
from cafepos.printer import EscposPrintDispatcher, PreviewPrintDispatcher, check_printer_dependencies
from cafepos.session import PosSession


def build_session(settings: Settings) -> PosSession:
    """Wire the HTTP API, print journal and printer into one session."""
    api = HttpOrderApi(settings.api_base_url, token=settings.api_token, timeout=settings.api_timeout)
    printer_ready, printer_status = check_printer_dependencies(settings)
    if printer_ready:
        printer = EscposPrintDispatcher(settings)
    else:
        structlog.get_logger(__name__).warning("printer_unavailable_using_preview", status=printer_status)
        printer = PreviewPrintDispatcher()
    return PosSession(api, settings=settings, printer=printer, journal=PrintJournal(settings.db_path))


def main() -> None:
    """Run the Textual application."""
    settings = Settings.from_env()
    configure_logging(settings.debug_log_path)
    PosApp(build_session(settings), settings=settings).run()


if __name__ == "__main__":
    main()
