# iguanaflow/logging.py
import logging
import sys

import structlog

# third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("stripe", "sqlalchemy.engine", "passlib")


def configure_logging(log_level: str = "INFO") -> None:
    """JSON event logs on stdout; called once when the app module loads."""
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            # webhook failures go through logger.exception
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
