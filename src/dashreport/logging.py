import logging
from typing import Any

import structlog


def configure_logging(level: int | str = logging.INFO, *, json_logs: bool = True) -> None:
    """Configure the structlog/stdlib bridge used by the CLI and the HTTP server.

    ``json_logs=False`` switches to the human readable console renderer for
    one-off ``dashreport generate`` runs in a terminal.
    """

    renderer: Any = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def bind_report_context(dashboard: str, report_id: str) -> structlog.stdlib.BoundLogger:
    """Return a logger carrying the dashboard and report identifiers."""

    return structlog.get_logger().bind(dashboard=dashboard, report_id=report_id)
