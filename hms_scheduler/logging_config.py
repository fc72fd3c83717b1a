"""JSON log lines via structlog, routed through the stdlib root logger."""
import logging
import sys

import structlog


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Emit one JSON object per event: level, logger, timestamp and fields.

    `exc_info=True` on an event renders the traceback into the line.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
