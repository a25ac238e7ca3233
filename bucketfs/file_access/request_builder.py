# bucketfs/file_access/request_builder.py
"""
Request construction for the Cloud Storage JSON API.

Every builder takes an already encoded object key (see ``PathCodec.encode``)
and returns an unauthorized ``HttpRequest`` skeleton; ``authorize`` attaches
the bearer token right before sending.
"""
import asyncio
import inspect
import io
from dataclasses import replace
from typing import Any, AsyncIterator, Optional
from urllib.parse import quote

from bucketfs.integrations.gcs_auth import Token
from bucketfs.integrations.transport import HttpRequest

OCTET_STREAM = "application/octet-stream"
API_PATH = "/storage/v1"
UPLOAD_PATH = "/upload/storage/v1"

BYTES_LIKE = (bytes, bytearray, memoryview)


class RequestBuilder:
    """Builds one request per backend operation, scoped to a single bucket."""

    def __init__(self, bucket: str, base_url: str = "https://www.googleapis.com"):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self._bucket_path = quote(bucket, safe="")

    def _objects(self) -> str:
        return f"{self.base_url}{API_PATH}/b/{self._bucket_path}/o"

    def _uploads(self) -> str:
        return f"{self.base_url}{UPLOAD_PATH}/b/{self._bucket_path}/o"

    def stat(self, key: str) -> HttpRequest:
        return HttpRequest("GET", f"{self._objects()}/{key}")

    def list(
        self,
        prefix: str,
        page_token: Optional[str] = None,
        max_results: Optional[int] = None,
        delimiter: bool = True,
    ) -> HttpRequest:
        query = []
        if delimiter:
            query.append("delimiter=/")
        query.append(f"prefix={prefix}")
        if max_results:
            query.append(f"maxResults={int(max_results)}")
        if page_token:
            query.append(f"pageToken={quote(page_token, safe='')}")
        return HttpRequest("GET", f"{self._objects()}?{'&'.join(query)}")

    def get(self, key: str) -> HttpRequest:
        return HttpRequest("GET", f"{self._objects()}/{key}?alt=media")

    def put(self, key: str, body: Any = None, content_length: Optional[int] = None) -> HttpRequest:
        headers = {"Content-Type": OCTET_STREAM}
        if content_length is not None:
            headers["Content-Length"] = str(content_length)
        name = key.rstrip("/")
        return HttpRequest("POST", f"{self._uploads()}?uploadType=media&name={name}", headers, body)

    def delete(self, key: str) -> HttpRequest:
        return HttpRequest("DELETE", f"{self._objects()}/{key}")

    def mkdir(self, key: str) -> HttpRequest:
        name = key.rstrip("/")
        headers = {"Content-Type": OCTET_STREAM, "Content-Length": "0"}
        return HttpRequest("POST", f"{self._uploads()}?uploadType=media&name={name}/", headers, b"")

    def copy(self, source_key: str, destination_key: str, rewrite_token: Optional[str] = None) -> HttpRequest:
        """Server-side copy; repeat with the returned token until the store reports done."""
        url = f"{self._objects()}/{source_key}/rewriteTo/b/{self._bucket_path}/o/{destination_key}"
        if rewrite_token:
            url += f"?rewriteToken={quote(rewrite_token, safe='')}"
        return HttpRequest("POST", url, {"Content-Length": "0"}, b"")

    def bucket_info(self) -> HttpRequest:
        return HttpRequest("GET", f"{self.base_url}{API_PATH}/b/{self._bucket_path}")


def authorize(request: HttpRequest, token: Token) -> HttpRequest:
    return replace(request, headers={**request.headers, "Authorization": token.header_value()})


async def stream_body(source: Any, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
    """
    Yield a caller-supplied byte source chunk by chunk.

    Accepts bytes-like objects, binary file objects with a blocking
    ``read(n)``, objects whose ``read(n)`` is a coroutine (aiofiles handles,
    ``asyncio.StreamReader``) and async iterables of bytes. Blocking reads
    run in a worker thread.
    """
    if isinstance(source, BYTES_LIKE):
        view = memoryview(source).cast("B")
        for start in range(0, len(view), chunk_size):
            yield bytes(view[start:start + chunk_size])
        return
    if hasattr(source, "__aiter__") and not hasattr(source, "read"):
        async for chunk in source:
            if chunk:
                yield bytes(chunk)
        return
    read = getattr(source, "read", None)
    if read is None:
        raise TypeError(f"unsupported byte source: {type(source).__name__}")
    while True:
        if inspect.iscoroutinefunction(read):
            chunk = await read(chunk_size)
        else:
            chunk = await asyncio.to_thread(read, chunk_size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
        if not chunk:
            return
        yield bytes(chunk)


def known_length(source: Any) -> Optional[int]:
    """Payload size when it can be told without reading the source."""
    if isinstance(source, BYTES_LIKE):
        return memoryview(source).nbytes
    if isinstance(source, io.BytesIO):
        return len(source.getbuffer()) - source.tell()
    return None
