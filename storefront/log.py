"""Structured logging setup for the storefront service."""

import logging
import os
import sys

import structlog

HANDLER_NAME = "storefront"


def get_log_level() -> str:
    env = (os.getenv("ENVIRONMENT") or "development").lower()
    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }
    return os.getenv("LOG_LEVEL", level_map.get(env, "INFO")).upper()


def configure_logging() -> None:
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # handlers installed by the host (uvicorn, pytest) are left alone
    handler = next((h for h in root_logger.handlers if h.get_name() == HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(HANDLER_NAME)
        root_logger.addHandler(handler)
    handler.setLevel(log_level)

    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.contextvars.merge_contextvars,
    ]

    env = os.getenv("ENVIRONMENT", "development").lower()
    if env in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
