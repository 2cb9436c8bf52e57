"""
structlog setup for the NAC API.

Every event carries the request id assigned by the HTTP middleware and, once
an access token has been verified, the id of the calling user. Output is one
JSON object per line unless LOG_FORMAT is changed in development, which
switches to the colored console renderer.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

from nac_api.config import Settings, settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[int | None] = ContextVar("user_id", default=None)


def add_request_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Copy the per-request ids into the event, without overriding explicit keys."""
    request_id = request_id_ctx.get()
    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    user_id = user_id_ctx.get()
    if user_id is not None:
        event_dict.setdefault("user_id", user_id)
    return event_dict


def _uses_console(config: Settings) -> bool:
    return config.ENVIRONMENT == "development" and config.LOG_FORMAT != "json"


def configure_logging(config: Settings | None = None) -> None:
    """Install the structlog pipeline and route stdlib logging to stdout."""
    config = config or settings

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
    ]
    if _uses_console(config):
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.LOG_LEVEL.upper()),
    )

    # Per-request access lines are only useful while developing
    if not _uses_console(config):
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Example:
        logger = get_logger(__name__)
        logger.info("device_registered", target_user_id=12, mac_address="AA:BB:CC:DD:EE:FF")
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def set_request_context(request_id: str) -> None:
    """Start a request's log context; any user id from a previous request is dropped."""
    request_id_ctx.set(request_id)
    user_id_ctx.set(None)


def set_user_context(user_id: int) -> None:
    """Attach the authenticated caller to the rest of the request's events."""
    user_id_ctx.set(user_id)


def clear_request_context() -> None:
    request_id_ctx.set(None)
    user_id_ctx.set(None)
