"""Shared fakes for the storage backend tests.

`FakeGCS` is a minimal in-memory object store that speaks the subset of the
Cloud Storage JSON API the backend uses. It doubles as the backend's
transport, so tests exercise the real request building, status mapping and
decoding without performing network requests.
"""
import json
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from urllib.parse import unquote, urlsplit

import pytest

from bucketfs.file_access.cloud_storage import CloudStorage
from bucketfs.integrations.gcs_auth import Token
from bucketfs.integrations.transport import HttpRequest, HttpResponse
from bucketfs.monitoring.context import get_request_context

BASE_URL = "https://storage.test"


def _unquote_key(encoded: str) -> str:
    return "/".join(unquote(segment) for segment in encoded.split("/"))


def _query(url: str) -> dict:
    params = {}
    query = urlsplit(url).query
    for pair in query.split("&") if query else []:
        name, _, value = pair.partition("=")
        params[name] = unquote(value)
    return params


async def _consume(body) -> bytes:
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    return b"".join([bytes(chunk) async for chunk in body])


async def _chunks(data: bytes, size: int):
    for start in range(0, len(data), size):
        yield data[start:start + size]


class FakeGCS:
    """In-memory bucket plus transport.

    - `objects`: name -> (payload, updated)
    - `requests`: every request received, with its body materialized
    - `contexts`: the request context active when each request was sent
    - `respond_next(status, body)`: one-shot canned responses, served before anything else
    - `rejected_tokens`: bearer values answered with 401
    """

    def __init__(self, bucket: str = "test-bucket", chunk_size: int = 4):
        self.bucket = bucket
        self.chunk_size = chunk_size
        self.objects = {}
        self.requests = []
        self.contexts = []
        self.rejected_tokens = set()
        self.rewrite_steps = 1
        self.closed = False
        self._canned = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # -- test helpers --
    def add(self, name: str, data: bytes = b"") -> None:
        self._clock += timedelta(seconds=1)
        self.objects[name] = (bytes(data), self._clock)

    def respond_next(self, status: int, body=b"", method: str = None) -> None:
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode()
        self._canned.append((method, status, body))

    def record(self, name: str) -> dict:
        data, updated = self.objects[name]
        return {
            "kind": "storage#object",
            "name": name,
            "bucket": self.bucket,
            "size": str(len(data)),
            "updated": updated.isoformat().replace("+00:00", "Z"),
            "contentType": "application/octet-stream",
        }

    # -- transport interface --
    @asynccontextmanager
    async def send(self, request: HttpRequest):
        body = await _consume(request.body)
        self.requests.append(HttpRequest(request.method, request.url, dict(request.headers), body))
        self.contexts.append(get_request_context())
        status, payload = self._handle(request, body)
        yield HttpResponse(status=status, headers={}, chunks=_chunks(payload, self.chunk_size))

    async def close(self) -> None:
        self.closed = True

    # -- emulation --
    def _json(self, status: int, payload) -> tuple:
        return status, json.dumps(payload).encode()

    def _error(self, status: int, message: str) -> tuple:
        return self._json(status, {"error": {"code": status, "message": message}})

    def _handle(self, request: HttpRequest, body: bytes) -> tuple:
        for index, (method, status, canned) in enumerate(self._canned):
            if method is None or method == request.method:
                del self._canned[index]
                return status, canned

        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer ") or auth[len("Bearer "):] in self.rejected_tokens:
            return self._error(401, "Invalid Credentials")

        parts = urlsplit(request.url)
        path, params = parts.path, _query(request.url)
        objects = f"/storage/v1/b/{self.bucket}/o"
        uploads = f"/upload/storage/v1/b/{self.bucket}/o"

        if path == uploads and request.method == "POST":
            name = params["name"]
            self.add(name, body)
            return self._json(200, self.record(name))
        if path == objects and request.method == "GET":
            return self._json(200, self._list(params))
        if path.startswith(objects + "/") and "/rewriteTo/b/" in path:
            return self._rewrite(path, params)
        if path.startswith(objects + "/"):
            name = _unquote_key(path[len(objects) + 1:])
            if name not in self.objects:
                return self._error(404, "No such object")
            if request.method == "DELETE":
                del self.objects[name]
                return 204, b""
            if params.get("alt") == "media":
                return 200, self.objects[name][0]
            return self._json(200, self.record(name))
        if path == f"/storage/v1/b/{self.bucket}" and request.method == "GET":
            return self._json(200, {"kind": "storage#bucket", "name": self.bucket})
        return self._error(404, "Not Found")

    def _list(self, params: dict) -> dict:
        prefix = params.get("prefix", "")
        delimiter = params.get("delimiter")
        entries = {}
        for name in sorted(self.objects):
            if not name.startswith(prefix):
                continue
            rest = name[len(prefix):]
            if delimiter and delimiter in rest:
                sub = prefix + rest[:rest.index(delimiter) + 1]
                entries[sub] = "prefix"
            else:
                entries[name] = "item"
        ordered = sorted(entries.items())
        start = int(params.get("pageToken", 0))
        limit = int(params.get("maxResults", 0)) or len(ordered)
        page = ordered[start:start + limit]

        result = {"kind": "storage#objects"}
        items = [self.record(name) for name, kind in page if kind == "item"]
        prefixes = [name for name, kind in page if kind == "prefix"]
        if items:
            result["items"] = items
        if prefixes:
            result["prefixes"] = prefixes
        if start + limit < len(ordered):
            result["nextPageToken"] = str(start + limit)
        return result

    def _rewrite(self, path: str, params: dict) -> tuple:
        source_part, target_part = path.split("/rewriteTo/b/", 1)
        objects = f"/storage/v1/b/{self.bucket}/o/"
        source = _unquote_key(source_part[len(objects):])
        target_bucket, _, target_encoded = target_part.partition("/o/")
        if source not in self.objects or target_bucket != self.bucket:
            return self._error(404, "No such object")
        step = int(params.get("rewriteToken", "0") or 0) + 1
        if step < self.rewrite_steps:
            return self._json(200, {"kind": "storage#rewriteResponse", "done": False,
                                    "rewriteToken": str(step), "totalBytesRewritten": "0"})
        target = _unquote_key(target_encoded)
        self.add(target, self.objects[source][0])
        return self._json(200, {"kind": "storage#rewriteResponse", "done": True,
                                "totalBytesRewritten": str(len(self.objects[target][0])),
                                "resource": self.record(target)})


class FakeTokenProvider:
    """Hands out token-1, then token-2, ... on every forced refresh."""

    def __init__(self):
        self.generation = 1
        self.calls = []

    async def get_token(self, scopes, refresh=False):
        self.calls.append(refresh)
        if refresh:
            self.generation += 1
        return Token("Bearer", f"token-{self.generation}")


@pytest.fixture
def gcs():
    return FakeGCS()


@pytest.fixture
def tokens():
    return FakeTokenProvider()


@pytest.fixture
def storage(gcs, tokens):
    return CloudStorage(gcs.bucket, tokens, transport=gcs, base_url=BASE_URL, chunk_size=4)


@pytest.fixture
def make_storage(gcs, tokens):
    """Build a CloudStorage over the fake store with selected overrides."""
    def _make(bucket=None, token_provider=None, transport=None, **kwargs):
        kwargs.setdefault("base_url", BASE_URL)
        return CloudStorage(
            bucket or gcs.bucket,
            token_provider or tokens,
            transport=transport or gcs,
            **kwargs,
        )
    return _make
