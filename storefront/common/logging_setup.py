import logging
import sys
import json
import re
from typing import Any, Dict, Optional
from logging.handlers import QueueHandler, QueueListener
from queue import Queue
from storefront.config.admin_config import admin_config
from storefront.common.constants import request_id_ctx

ENV = getattr(admin_config, "ENV", "dev").lower()

SENSITIVE_KEYS = (
    "password", "secret", "token", "authorization", "api_key",
    "client_secret", "card_number", "cvv",
)

# attributes every LogRecord carries, anything else came in through extra=
_RECORD_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName", "message", "asctime",
))

# customer identifiers that are shortened outside dev
_MASKED_FIELDS = ("email", "session_id", "payment_intent_id")


def sanitize_message_text(msg: str) -> str:
    """Redact `key=value` and `"key": "value"` pairs for sensitive keys (best-effort)."""
    out = msg
    for key in SENSITIVE_KEYS:
        out = re.sub(rf'("{key}"\s*:\s*")[^"]+(")', rf'\1[REDACTED]\2', out, flags=re.IGNORECASE)
        out = re.sub(rf'({key}\s*[=:]\s*)[\w\-\./]+', rf'\1[REDACTED]', out, flags=re.IGNORECASE)
    return out


def _mask(value: Any) -> str:
    text = str(value)
    if "@" in text:
        local, _, domain = text.partition("@")
        return f"{local[:2]}***@{domain}"
    if len(text) > 12:
        return text[:8] + "..." + text[-4:]
    return text[:4] + "..."


class JSONFormatter(logging.Formatter):
    """Structured JSON formatter used outside dev."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "env": ENV,
            "service": admin_config.SERVICE_NAME,
        }

        rid = request_id_ctx.get()
        if rid:
            log_data["request_id"] = rid

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            if key in _MASKED_FIELDS and value is not None:
                value = _mask(value)
            log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["message"] = sanitize_message_text(log_data.get("message", ""))
        return json.dumps(log_data, default=str)


class SecurityFilter(logging.Filter):
    """Redacts obvious secrets from the rendered message before it is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.msg = sanitize_message_text(record.getMessage())
            record.args = ()
        except (TypeError, ValueError):
            # a malformed format string still gets logged as is
            pass
        return True


_queue_listener: Optional[QueueListener] = None


def setup_logging():
    """Route every record through a queue so request handlers never block on stdout.

    Safe to call again, the previous listener is stopped first.
    """
    global _queue_listener

    shutdown_logging()

    log_level = logging.INFO if ENV in ("prod", "staging") else logging.DEBUG

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    q: Queue = Queue(-1)
    qh = QueueHandler(q)

    console_handler = logging.StreamHandler(sys.stdout)
    if ENV != "dev":
        console_handler.setFormatter(JSONFormatter())
        console_handler.addFilter(SecurityFilter())
    else:
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)8s] %(name)s:%(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root.setLevel(log_level)
    root.addHandler(qh)

    _queue_listener = QueueListener(q, console_handler, respect_handler_level=True)
    _queue_listener.start()

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING if ENV != "dev" else logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger("storefront.app")


def shutdown_logging():
    global _queue_listener
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


class ContextLogger:
    """Thin wrapper that stamps the current request id onto every record's extras."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, args, kwargs):
        extra = dict(kwargs.pop("extra", None) or {})
        rid = request_id_ctx.get()
        if rid:
            extra.setdefault("request_id", rid)
        kwargs["extra"] = extra
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, args, kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, kwargs)


def get_logger(name: str = "storefront.app") -> ContextLogger:
    return ContextLogger(name)
