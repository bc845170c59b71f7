"""structlog setup for chirpy.

Configured once at import from ``LOG_LEVEL``, ``LOG_JSON`` and
``LOG_DEV_MODE``. Every event carries the request correlation id when one is
bound, and values under credential-looking keys are masked before rendering.
"""

from __future__ import annotations

import logging
import os
import uuid
from contextvars import ContextVar
from typing import Any, MutableMapping, Optional

import structlog

EventDict = MutableMapping[str, Any]

_CREDENTIAL_MARKERS = frozenset(
    {"password", "secret", "token", "api_key", "authorization", "email"}
)
_MASK = "***"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind ``correlation_id`` (or a fresh UUID) to the current context."""
    cid = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def _add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    cid = correlation_id_var.get()
    if cid:
        event_dict.setdefault("correlation_id", cid)
    return event_dict


def _mask(value: Any) -> Any:
    if isinstance(value, bytes):
        return _MASK
    if isinstance(value, str):
        # Long values keep two characters each side for correlation
        return f"{value[:2]}{_MASK}{value[-2:]}" if len(value) > 8 else _MASK
    return value


def _redact_credentials(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in [k for k in event_dict if k != "event"]:
        if any(marker in key.lower() for marker in _CREDENTIAL_MARKERS):
            event_dict[key] = _mask(event_dict[key])
    return event_dict


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _level_number(level: str) -> int:
    number = getattr(logging, level.upper(), None)
    return number if isinstance(number, int) else logging.INFO


def configure_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_correlation_id,
        _redact_credentials,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(
    os.getenv("LOG_LEVEL", "INFO"),
    json_output=_env_flag("LOG_JSON", True) and not _env_flag("LOG_DEV_MODE", False),
)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
