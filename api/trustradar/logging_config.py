import logging
import sys

import structlog

from trustradar.config import settings

# Per-request httpx lines from the prober drown out the service's own events.
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(debug: bool = settings.debug) -> None:
    """Configure structlog JSON output over stdlib logging.

    The root level follows ``debug``: DEBUG when set, INFO otherwise. Records
    below the root level are dropped by ``filter_by_level`` before rendering.
    """
    level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # first: per-request context
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
