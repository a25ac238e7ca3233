# bucketfs/file_access/response_mapper.py
"""
Status validation and JSON decoding of object store responses.

The status code is always checked before a body is decoded: an error body is
never a valid object record.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bucketfs.file_access.errors import (
    AuthorizationError,
    MetadataDecodeError,
    NotFound,
    RequestRejected,
    StorageError,
    Unavailable,
)


class Item(BaseModel):
    """Object record returned by stat, upload and listing calls."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: str
    updated: Optional[datetime] = None
    size: str


class ListingPage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    items: Optional[List[Item]] = None
    prefixes: Optional[List[str]] = None
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


class RewriteResponse(BaseModel):
    """Progress record of a server-side copy."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    done: bool
    rewrite_token: Optional[str] = Field(None, alias="rewriteToken")
    total_bytes_rewritten: Optional[str] = Field(None, alias="totalBytesRewritten")
    resource: Optional[Item] = None


def _error_message(status: int, body: bytes) -> str:
    message = None
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        message = payload["error"].get("message")
    if not message:
        message = body[:200].decode("utf-8", errors="replace").strip()
    return f"HTTP {status}: {message}" if message else f"HTTP {status}"


def error_for_status(
    status: int, body: bytes = b"", *, op: Optional[str] = None, path: Optional[str] = None
) -> Optional[StorageError]:
    """Map a response status to the matching storage error, or None for 2xx."""
    if 200 <= status < 300:
        return None
    if status == 404:
        return NotFound("object not found", op=op, path=path, status=status)
    message = _error_message(status, body)
    if status in (401, 403):
        return AuthorizationError(message, op=op, path=path, status=status)
    if status == 429 or status >= 500:
        return Unavailable(message, op=op, path=path, status=status)
    return RequestRejected(message, op=op, path=path, status=status)


def raise_for_status(
    status: int, body: bytes = b"", *, op: Optional[str] = None, path: Optional[str] = None
) -> None:
    error = error_for_status(status, body, op=op, path=path)
    if error is not None:
        raise error


def _decode(model, body: Union[bytes, str], op: Optional[str], path: Optional[str]):
    try:
        return model.model_validate_json(body)
    except ValidationError as exc:
        raise MetadataDecodeError(
            f"undecodable {model.__name__} body: {exc.error_count()} error(s)", op=op, path=path
        ) from exc


def decode_item(body: Union[bytes, str], *, op: Optional[str] = None, path: Optional[str] = None) -> Item:
    return _decode(Item, body, op, path)


def decode_listing(body: Union[bytes, str], *, op: Optional[str] = None, path: Optional[str] = None) -> ListingPage:
    return _decode(ListingPage, body, op, path)


def decode_rewrite(body: Union[bytes, str], *, op: Optional[str] = None, path: Optional[str] = None) -> RewriteResponse:
    return _decode(RewriteResponse, body, op, path)
