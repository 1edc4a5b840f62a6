# logging_utils.py
"""Logging setup for the SME portal.

Two output modes are supported:

- JSON lines (``LOG_FORMAT=json``, default outside dev) for log shipping.
- Colored single-line text for local development.

Stage code logs through :class:`ContextAdapter`, which stamps every record
with the fields of the enclosing :class:`LogContext` (``stage``, ``sme_id``,
``country_id``).
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import Config, config as default_config

SERVICE_NAME = "sme-portal"

# Attributes every LogRecord carries; anything else arrived through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Third-party loggers held at WARNING unless DEBUG is requested
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "anthropic",
    "firecrawl",
    "sqlalchemy.engine",
    "uvicorn.access",
)

CONTEXT_FIELDS = ("stage", "sme_id", "country_id")


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": self.service_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }

        extras = {k: _jsonable(v) for k, v in _record_extras(record).items()}
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``[time] LEVEL [logger] message key=value`` with optional ANSI colors."""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "35",
    }

    def __init__(self, use_colors: Optional[bool] = None):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_colors = sys.stdout.isatty() if use_colors is None else use_colors

    def _level(self, record: logging.LogRecord) -> str:
        label = record.levelname.ljust(8)
        color = self.LEVEL_COLORS.get(record.levelno)
        if self.use_colors and color:
            return f"\033[{color}m{label}\033[0m"
        return label

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"[{self.formatTime(record, self.datefmt)}] {self._level(record)} "
            f"[{record.name}] {record.getMessage()}"
        )

        context = [f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if hasattr(record, key)]
        if context:
            line = f"{line} {' '.join(context)}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: Optional[str] = None,
    structured: Optional[bool] = None,
    service_name: str = SERVICE_NAME,
    settings: Optional[Config] = None,
) -> logging.Logger:
    """Install a single stdout handler on the root logger.

    Args:
        level: Level name. Defaults to DEBUG when ``DEBUG`` is set, else
            ``LOG_LEVEL``.
        structured: Force JSON (True) or text (False) output. Defaults to
            ``LOG_FORMAT`` (json outside dev).
        service_name: Value of the ``service`` field in JSON output.
        settings: Configuration to read defaults from (global ``config``).

    Returns:
        The ``sme_portal`` package logger.
    """
    settings = settings or default_config
    if level is not None:
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    elif settings.DEBUG:
        log_level = logging.DEBUG
    else:
        log_level = settings.get_log_level()
    level_name = logging.getLevelName(log_level)

    use_json = settings.LOG_FORMAT.lower() == "json" if structured is None else structured
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        StructuredFormatter(service_name) if use_json else HumanReadableFormatter()
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    quiet_level = log_level if log_level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    logger = logging.getLogger("sme_portal")
    logger.info("Logging configured", extra={"log_level": level_name, "structured": use_json})
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``sme_portal`` namespace."""
    if name != "sme_portal" and not name.startswith("sme_portal."):
        name = f"sme_portal.{name}"
    return logging.getLogger(name)


_log_context: ContextVar[Dict[str, Any]] = ContextVar("sme_portal_log_context", default={})


class LogContext:
    """Bind fields to every record logged through a :class:`ContextAdapter`.

    Contexts nest, and each asyncio task sees only the fields bound in its
    own call chain.

    Example:
        >>> with LogContext(stage="deploy", sme_id="1234"):
        ...     logger.info("Deploying")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token: Optional[Token] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    @staticmethod
    def current() -> Dict[str, Any]:
        return dict(_log_context.get())


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter merging the active :class:`LogContext` into ``extra``."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**LogContext.current(), **(kwargs.get("extra") or {})}
        return msg, kwargs
