"""structlog setup; output goes to a debug file so it never draws over the TUI."""

from __future__ import annotations

from pathlib import Path

import structlog


def configure_logging(path: str | None = None) -> None:
    """Route structured JSON log lines to ``path`` (or stdout when not given)."""
    if path:
        log_file = Path(path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger_factory = structlog.WriteLoggerFactory(file=log_file.open("a", encoding="utf-8"))
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )
