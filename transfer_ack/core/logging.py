from __future__ import annotations

import logging
import sys
import time
import uuid
from typing import Any, Dict

import structlog
from fastapi import Request

REQUEST_ID_HEADER = "x-request-id"

# Keys whose values must never reach the log stream.
_SECRET_KEYS = frozenset(
    {"access_token", "authorization", "password", "password_hash", "token"}
)


def _level_name(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict["level"] = method_name
    return event_dict


def _redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging(env: str = "development") -> None:
    """Route stdlib and structlog output to stdout.

    Development gets coloured console lines at DEBUG; every other
    environment gets one JSON object per line at INFO.
    """
    development = env == "development"
    level = logging.DEBUG if development else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    renderer: Any
    if development:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            _level_name,
            _redact_secrets,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Tag every log line of a request with its id and log one summary line.

    The id is taken from the incoming ``x-request-id`` header when present
    and echoed back on the response.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id, method=request.method, path=request.url.path
    )
    log = structlog.get_logger("transfer_ack.request")
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        log.exception("request.failed", duration_ms=_elapsed_ms(started))
        structlog.contextvars.clear_contextvars()
        raise

    log.info(
        "request.completed",
        status=response.status_code,
        duration_ms=_elapsed_ms(started),
    )
    structlog.contextvars.clear_contextvars()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
