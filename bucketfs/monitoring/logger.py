# bucketfs/monitoring/logger.py
"""
Structured JSON logger for the bucketfs storage backend.
"""
import logging
import json
from datetime import datetime, timezone

import structlog

from bucketfs.config import settings
from bucketfs.monitoring.context import get_request_context

_STANDARD_FIELDS = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}
_CONTEXT_FIELDS = ("component", "request_id", "session_id", "operation")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # structlog events carry no context fields; read them from the contextvars
        ctx = get_request_context()
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "component": getattr(record, "component", None) or record.name,
            "request_id": getattr(record, "request_id", None) or ctx["request_id"],
            "session_id": getattr(record, "session_id", None) or ctx["session_id"],
            "operation": getattr(record, "operation", None) or ctx["operation"],
        }
        # Extra keyword fields passed to log() (status, bucket, ...)
        for key, value in record.__dict__.items():
            if key in _STANDARD_FIELDS or key in _CONTEXT_FIELDS:
                continue
            log_record[key] = value
        return json.dumps(log_record, default=str)


def _level(name: str) -> int:
    return getattr(logging, (name or "INFO").upper(), logging.INFO)


logger = logging.getLogger("bucketfs")
logger.setLevel(_level(settings.LOG_LEVEL))
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter())
logger.handlers = [handler]

# file_access modules log through structlog; hand its events to the stdlib
# loggers above so both styles share the JSON handler and LOG_LEVEL
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.render_to_log_kwargs,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


# Helper to log with context
def log(level: str, message: str, component: str = None, request_id: str = None, session_id: str = None, operation: str = None, **kwargs):
    # Map legacy 'module' kwarg to 'component' to avoid LogRecord collision
    if "module" in kwargs and not component:
        component = kwargs.pop("module")
    # Fill missing fields from contextvars
    ctx = get_request_context()
    if request_id is None:
        request_id = ctx.get("request_id")
    if session_id is None:
        session_id = ctx.get("session_id")
    if operation is None:
        operation = ctx.get("operation")

    extra = {
        "request_id": request_id,
        "session_id": session_id,
        "operation": operation,
        "component": component,
        **kwargs
    }
    logger.log(getattr(logging, level.upper(), logging.INFO), message, extra=extra)
