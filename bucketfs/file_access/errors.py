# bucketfs/file_access/errors.py
"""Storage error taxonomy.

Every failure surfaced by the backend is a ``StorageError`` subclass. Hosts
branch on the exception type or on ``exc.kind`` and never need to look at
HTTP status codes or JSON bodies.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    INVALID_PATH = "invalid_path"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    NOT_EMPTY = "not_empty"
    UNAVAILABLE = "unavailable"
    REQUEST_REJECTED = "request_rejected"
    METADATA_DECODE = "metadata_decode"
    UNSUPPORTED = "unsupported"


class StorageError(Exception):
    """Wraps a failed backend operation with its context."""

    kind: ErrorKind = ErrorKind.UNAVAILABLE
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        op: Optional[str] = None,
        path: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.message = message
        self.op = op
        self.path = path
        self.status = status
        super().__init__(self.__str__())

    def __str__(self) -> str:  # pragma: no cover - trivial string formatting
        parts = []
        if self.op:
            parts.append(f"{self.op} failed")
        if self.path is not None:
            parts.append(f"for path={self.path!r}")
        prefix = " ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message


class InvalidPath(StorageError):
    kind = ErrorKind.INVALID_PATH


class AuthorizationError(StorageError):
    """Token missing, expired or rejected by the store (401/403)."""

    kind = ErrorKind.AUTHORIZATION


class NotFound(StorageError):
    kind = ErrorKind.NOT_FOUND


class NotEmpty(StorageError):
    kind = ErrorKind.NOT_EMPTY


class Unavailable(StorageError):
    """Transient failure (429, 5xx, network). Surfaced, never retried internally."""

    kind = ErrorKind.UNAVAILABLE
    retryable = True


class TransportError(Unavailable):
    """Connection, TLS or timeout failure before a response status was received."""

    def __init__(self, message: str, *, reason: str = "connection", **kwargs):
        self.reason = reason
        super().__init__(message, **kwargs)


class RequestRejected(StorageError):
    """Non-retryable 4xx other than 401/403/404/429."""

    kind = ErrorKind.REQUEST_REJECTED


class MetadataDecodeError(StorageError):
    kind = ErrorKind.METADATA_DECODE


class Unsupported(StorageError):
    kind = ErrorKind.UNSUPPORTED


__all__ = [
    "ErrorKind",
    "StorageError",
    "InvalidPath",
    "AuthorizationError",
    "NotFound",
    "NotEmpty",
    "Unavailable",
    "TransportError",
    "RequestRejected",
    "MetadataDecodeError",
    "Unsupported",
]
