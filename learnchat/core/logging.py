"""
Logging configuration for the application.

structlog renders everything: console output in development, JSON lines in
production. Admin and user processes usually write to the same sink, so every
event carries the actor role next to the request id.
"""

import logging
import sys
from typing import Any, List

import structlog
from asgi_correlation_id import correlation_id

from learnchat.config import get_settings

settings = get_settings()

# Libraries that are chatty at INFO
QUIET_LOGGERS = {
    "apscheduler.executors.default": logging.WARNING,
    "apscheduler.scheduler": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def add_correlation_id(logger, method_name, event_dict):
    request_id = correlation_id.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_actor_role(logger, method_name, event_dict):
    event_dict.setdefault("actor", settings.ACTOR_ROLE)
    return event_dict


def _renderer() -> Any:
    if settings.ENVIRONMENT == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging() -> None:
    """Configure structlog and route stdlib logging (uvicorn, apscheduler) through it."""
    shared_processors: List[Any] = [
        add_correlation_id,
        add_actor_role,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    tail: List[Any] = [_renderer()]
    if settings.ENVIRONMENT == "production":
        tail.insert(0, structlog.processors.format_exc_info)

    structlog.configure(
        processors=shared_processors + tail,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(),
            ],
        )
    )

    # Replace rather than append: create_app may run more than once per process
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.LOG_LEVEL.upper())

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
