"""
structlog setup for the monitor.

Services log dotted events (``reconcile.started``, ``pass.completed``) through
structlog; routers and the entry point go through stdlib logging, which ends
up on the same stdout stream. Telegram bot tokens and Bearer secrets are masked
in every event before rendering.
"""

from __future__ import annotations

import logging
import re
import sys
import time
import uuid
from typing import Any, Dict

import structlog
from fastapi import Request

# Telegram bot tokens travel in the URL path: /bot<id>:<secret>/sendMessage
BOT_TOKEN_RE = re.compile(r"bot\d+:[A-Za-z0-9_-]+")
BEARER_RE = re.compile(r"Bearer\s+\S+")

# Third-party loggers that log full request URLs at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def _mask(value: str) -> str:
    value = BOT_TOKEN_RE.sub("bot***", value)
    return BEARER_RE.sub("Bearer ***", value)


def redact_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _mask(value)
    return event_dict


def _add_log_level(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    event_dict["level"] = method_name
    return event_dict


def configure_logging(env: str = "development") -> None:
    """Console output with colors in development, one JSON object per line elsewhere."""
    development = env == "development"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if development else logging.INFO,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer: Any = (
        structlog.dev.ConsoleRenderer(colors=True)
        if development
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            _add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """
    Bind ``request_id`` (and ``cron`` for scheduler-triggered calls) to every
    event logged while handling the request, then log one ``request.completed``.
    """
    started = time.perf_counter()
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        path=request.url.path,
        cron=request.headers.get("x-cron") is not None,
    )

    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["x-request-id"] = request_id
        return response
    finally:
        structlog.get_logger("safe_monitor.http").info(
            "request.completed",
            method=request.method,
            status=status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        structlog.contextvars.clear_contextvars()
