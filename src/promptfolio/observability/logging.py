"""structlog setup for the PromptFolio service.

Application modules log through ``logging.getLogger(__name__)`` with
``%``-style messages and ``extra={...}`` fields. ``configure_logging`` routes
those records through structlog's ``ProcessorFormatter`` so each one comes
out as a single JSON line (or a console line in development), tagged with the
id of the HTTP request being served.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import TextIO

import structlog

# Set by RequestIDMiddleware for the duration of one request.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_HANDLER_NAME = "promptfolio"
_QUIET_LOGGERS = ("uvicorn.access", "httpx")

_configured = False


def _add_request_id(logger, method_name: str, event_dict: dict) -> dict:
    request_id = request_id_ctx.get()
    if request_id is not None:
        event_dict["request_id"] = request_id
    return event_dict


def _pre_chain() -> list:
    return [
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    stream: TextIO | None = None,
) -> logging.Handler | None:
    """Install the structlog formatter on the root logger. First call wins.

    ``level`` defaults to ``LOG_LEVEL`` (INFO), ``json_output`` to
    ``LOG_FORMAT != "console"``, and ``stream`` to stdout. Returns the
    installed handler, or ``None`` when logging was already configured.
    """
    global _configured
    if _configured:
        return None
    _configured = True

    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") != "console"
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def _reset_for_tests() -> None:
    global _configured
    _configured = False
    root = logging.getLogger()
    for handler in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(handler)
