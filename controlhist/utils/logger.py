"""Structured logging for the control history service using structlog."""

import logging
import os

import structlog
from structlog.types import FilteringBoundLogger


def configure_structlog():
    """Configure structlog with pretty or JSON output based on LOG_FORMAT env.

    stdlib logging (dulwich, uvicorn, watchdog) is routed through the same
    ProcessorFormatter so every line has one shape.
    """
    log_format = os.getenv("LOG_FORMAT", "pretty").lower()
    log_colors_env = os.getenv("LOG_COLORS", "true").lower()
    log_colors = log_colors_env in ("true", "1", "yes", "on")
    log_level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=log_colors)

    logging.root.handlers = []
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(log_level)

    logging.captureWarnings(True)

    # dulwich logs every pack it opens at DEBUG
    logging.getLogger("dulwich").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_structlog()


def request_log(
    logger: FilteringBoundLogger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **kwargs,
):
    """Log HTTP request with details."""
    logger.info(
        f"{method} {path} - {status_code}",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        **kwargs,
    )


def get_logger(name: str, level: int = logging.INFO) -> FilteringBoundLogger:
    """Get a configured structlog logger."""
    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(level)
    return structlog.get_logger(name)


api_logger = get_logger("controlhist.api", level=logging.DEBUG)
