# bucketfs/monitoring/context.py
"""
Request context propagated through contextvars.

Every backend operation binds a fresh request id and its operation name; log
records emitted while it runs (from ``log()`` and from structlog events) pick
them up. ``session_id`` identifies the front-end session driving the backend.
asyncio copies the context into each task, so concurrent operations never
see each other's values.
"""
import contextvars
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
session_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("session_id", default=None)
operation_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("operation", default=None)

_VARS = {
    "request_id": request_id_var,
    "session_id": session_id_var,
    "operation": operation_var,
}


def set_request_context(request_id=None, session_id=None, operation=None):
    for name, value in (("request_id", request_id), ("session_id", session_id), ("operation", operation)):
        if value is not None:
            _VARS[name].set(value)


def get_request_context() -> Dict[str, Optional[str]]:
    return {name: var.get() for name, var in _VARS.items()}


@contextmanager
def request_context(**values: Optional[str]) -> Iterator[None]:
    """Bind context values for the duration of the block, then restore the previous ones."""
    tokens = [(_VARS[name], _VARS[name].set(value)) for name, value in values.items() if value is not None]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


@contextmanager
def begin_operation(operation: str, request_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind ``operation`` and a request id for the duration of the block.

    A fresh id is minted unless ``request_id`` is given, so several blocks
    can belong to one logical call. The caller's values are restored on exit.
    """
    request_id = request_id or uuid.uuid4().hex
    with request_context(request_id=request_id, operation=operation):
        yield request_id

