# bucketfs/file_access/cloud_storage.py
"""
Google Cloud Storage backend.

Maps filesystem operations onto a flat object namespace:
- directories are key prefixes, listed one level at a time with the '/' delimiter
- an empty directory is a zero-length marker object whose key ends in '/'
- rename is a server-side copy followed by a delete (not atomic)

Every request goes through ``_call``: fetch a token, send, validate the
status, and on an authorization failure retry exactly once with a freshly
minted token.
"""
import io
import time
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import structlog

from bucketfs.config import settings
from bucketfs.file_access.base_fs import Fileinfo, HealthCheckResult, StorageBackend
from bucketfs.file_access.errors import (
    AuthorizationError,
    InvalidPath,
    MetadataDecodeError,
    NotEmpty,
    NotFound,
    StorageError,
    Unsupported,
)
from bucketfs.file_access.metadata import ObjectMetadata, directory_metadata, to_metadata
from bucketfs.file_access.object_reader import ObjectReader
from bucketfs.file_access.path_codec import (
    PathCodec,
    as_directory,
    as_object,
    is_directory_key,
    quote_key,
)
from bucketfs.file_access.request_builder import (
    BYTES_LIKE,
    RequestBuilder,
    authorize,
    known_length,
    stream_body,
)
from bucketfs.file_access.response_mapper import (
    Item,
    ListingPage,
    decode_item,
    decode_listing,
    decode_rewrite,
    error_for_status,
)
from bucketfs.integrations.gcs_auth import Token, TokenProvider
from bucketfs.integrations.transport import AiohttpTransport, HttpRequest, Transport
from bucketfs.monitoring.context import begin_operation

logger = structlog.get_logger()


def _seek_position(source: Any) -> Optional[int]:
    """Start offset of a seekable file source, so an upload can be replayed."""
    if isinstance(source, io.IOBase) and source.seekable():
        return source.tell()
    return None


class CloudStorage(StorageBackend):
    """
    StorageBackend over one Cloud Storage bucket.

    No operation can address objects outside ``bucket``. The transport and
    token provider are shared by all concurrent operations and released by
    ``close()``; the backend itself keeps no mutable state between calls.

    Example:
        async with CloudStorage("my-bucket", ServiceAccountAuth("key.json")) as fs:
            await fs.mkd("reports")
            await fs.put("reports/q1.csv", b"a,b\\n")
            async for entry in fs.list("reports/"):
                print(entry.path, entry.metadata.size)
    """

    def __init__(
        self,
        bucket: str,
        token_provider: TokenProvider,
        transport: Optional[Transport] = None,
        base_url: Optional[str] = None,
        scopes: Optional[Iterable[str]] = None,
        chunk_size: Optional[int] = None,
        page_size: Optional[int] = None,
    ):
        if not bucket:
            raise ValueError("CloudStorage requires a bucket name")
        self.bucket = bucket
        self.codec = PathCodec(bucket)
        self.builder = RequestBuilder(bucket, base_url or settings.GCS_API_BASE_URL)
        self.token_provider = token_provider
        self.transport = transport if transport is not None else AiohttpTransport()
        self.scopes = tuple(scopes or (settings.GCS_TOKEN_SCOPE,))
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE
        self.page_size = page_size if page_size is not None else settings.LIST_PAGE_SIZE

        logger.info("cloud_storage_initialized", bucket=bucket, base_url=self.builder.base_url)

    # ------------------
    # request plumbing
    # ------------------
    async def _token(self, refresh: bool = False) -> Token:
        return await self.token_provider.get_token(self.scopes, refresh=refresh)

    async def _send(self, request: HttpRequest) -> tuple:
        async with self.transport.send(request) as response:
            body = await response.read()
        return response.status, body

    async def _call(
        self,
        op: str,
        path: Any,
        build: Callable[[], HttpRequest],
        replayable: bool = True,
    ) -> bytes:
        """Send ``build()`` and return the body of a 2xx response."""
        status, body = await self._send(authorize(build(), await self._token()))
        error = error_for_status(status, body, op=op, path=str(path))

        if isinstance(error, AuthorizationError) and replayable:
            logger.warning("authorization_rejected_retrying", op=op, path=str(path), status=status)
            status, body = await self._send(authorize(build(), await self._token(refresh=True)))
            error = error_for_status(status, body, op=op, path=str(path))

        if error is not None:
            if isinstance(error, NotFound):
                logger.debug("object_not_found", op=op, path=str(path))
            else:
                logger.warning("storage_request_failed", op=op, path=str(path), status=status,
                               kind=error.kind.value)
            raise error
        return body

    async def _list_page(
        self,
        prefix: str,
        op: str,
        path: Any,
        page_token: Optional[str] = None,
        max_results: Optional[int] = None,
        delimiter: bool = True,
    ) -> ListingPage:
        body = await self._call(
            op, path,
            lambda: self.builder.list(quote_key(prefix), page_token, max_results, delimiter),
        )
        return decode_listing(body, op=op, path=str(path))

    def _metadata(self, item: Item, op: str, path: Any) -> ObjectMetadata:
        if item.name.endswith("/"):
            return directory_metadata(item.updated)
        try:
            return to_metadata(item)
        except MetadataDecodeError as exc:
            raise MetadataDecodeError(exc.message, op=op, path=str(path)) from exc

    def _object_key(self, path: Any, op: str) -> str:
        key = self.codec.normalize(path)
        if not as_object(key):
            raise InvalidPath("path names the bucket root", op=op, path=str(path))
        return key

    # ------------------
    # StorageBackend API
    # ------------------
    async def stat(self, path: str, user: Any = None) -> ObjectMetadata:
        with begin_operation("stat"):
            return await self._stat(path)

    async def _stat(self, path: Any) -> ObjectMetadata:
        key = self.codec.normalize(path)
        if not key:
            return directory_metadata()
        if is_directory_key(key):
            return await self._stat_directory(key, path)
        try:
            body = await self._call("stat", path, lambda: self.builder.stat(quote_key(key)))
        except NotFound:
            # No object by that name; it may still be a directory
            return await self._stat_directory(as_directory(key), path)
        return self._metadata(decode_item(body, op="stat", path=str(path)), "stat", path)

    async def _stat_directory(self, key: str, path: Any) -> ObjectMetadata:
        page = await self._list_page(key, "stat", path, max_results=1)
        items = page.items or []
        marker = next((item for item in items if item.name == key), None)
        if marker is not None or items or page.prefixes:
            return directory_metadata(marker.updated if marker is not None else None)
        raise NotFound("no such file or directory", op="stat", path=str(path))

    async def list(self, path: str, user: Any = None) -> AsyncIterator[Fileinfo]:
        # Bound per page only: the context must not stay set while the caller
        # runs between entries. Every page shares the first page's request id.
        prefix = as_directory(self.codec.normalize(path))
        request_id = None
        seen = set()
        page_token = None
        count = 0
        while True:
            with begin_operation("list", request_id) as request_id:
                page = await self._list_page(prefix, "list", path, page_token=page_token, max_results=self.page_size)
            for item in page.items or []:
                # The directory's own marker is not one of its entries
                if item.name == prefix or item.name in seen:
                    continue
                seen.add(item.name)
                count += 1
                yield Fileinfo(item.name, self._metadata(item, "list", path))
            for sub in page.prefixes or []:
                if sub == prefix or sub in seen:
                    continue
                seen.add(sub)
                count += 1
                yield Fileinfo(sub, directory_metadata())
            page_token = page.next_page_token
            if not page_token:
                break
        with begin_operation("list", request_id):
            logger.debug("directory_listed", path=prefix, entries=count)

    async def get(self, path: str, user: Any = None) -> ObjectReader:
        with begin_operation("get"):
            key = self._object_key(path, "get")
            body = await self._call("get", path, lambda: self.builder.get(quote_key(key)))
            logger.debug("object_downloaded", path=key, size=len(body))
        return ObjectReader(body)

    async def put(self, path: str, source: Any, user: Any = None) -> int:
        with begin_operation("put"):
            key = self._object_key(path, "put")
            start = _seek_position(source)
            length = known_length(source)

            def build() -> HttpRequest:
                if start is not None:
                    source.seek(start)
                return self.builder.put(quote_key(key), stream_body(source, self.chunk_size), length)

            # A consumed stream cannot be sent a second time
            replayable = isinstance(source, BYTES_LIKE) or start is not None
            body = await self._call("put", path, build, replayable=replayable)
            metadata = self._metadata(decode_item(body, op="put", path=str(path)), "put", path)
            logger.info("object_uploaded", path=as_object(key), size=metadata.size)
        return metadata.size

    async def delete(self, path: str, user: Any = None) -> None:
        with begin_operation("delete"):
            key = self._object_key(path, "delete")
            await self._call("delete", path, lambda: self.builder.delete(quote_key(key)))
            logger.info("object_deleted", path=key)

    async def mkd(self, path: str, user: Any = None) -> None:
        with begin_operation("mkd"):
            key = as_object(self._object_key(path, "mkd"))
            body = await self._call("mkd", path, lambda: self.builder.mkdir(quote_key(key)))
            decode_item(body, op="mkd", path=str(path))
            logger.info("directory_created", path=as_directory(key))

    async def rename(self, from_path: str, to_path: str, user: Any = None) -> None:
        """
        Copy then delete. Not atomic: a failure midway can leave both the
        source and the destination in place. Directories are moved object by
        object.
        """
        with begin_operation("rename"):
            await self._rename(from_path, to_path)

    async def _rename(self, from_path: Any, to_path: Any) -> None:
        source = self.codec.normalize(from_path)
        target = self.codec.normalize(to_path)
        if not as_object(source) or not as_object(target):
            raise Unsupported("cannot rename the bucket root", op="rename", path=str(from_path))
        if as_object(source) == as_object(target):
            return

        metadata = await self._stat(from_path)
        if metadata.is_file:
            await self._copy(as_object(source), as_object(target), from_path)
            await self._call("rename", from_path, lambda: self.builder.delete(quote_key(as_object(source))))
            logger.info("object_renamed", source=as_object(source), target=as_object(target))
            return

        source_dir, target_dir = as_directory(source), as_directory(target)
        if target_dir.startswith(source_dir):
            raise Unsupported("cannot move a directory into itself", op="rename", path=str(from_path))
        names = [name async for name in self._walk(source_dir, from_path)]
        for name in names:
            await self._copy(name, target_dir + name[len(source_dir):], from_path)
        for name in names:
            await self._call("rename", from_path, lambda: self.builder.delete(quote_key(name)))
        logger.info("directory_renamed", source=source_dir, target=target_dir, objects=len(names))

    async def _copy(self, source_key: str, target_key: str, path: Any) -> None:
        rewrite_token = None
        while True:
            body = await self._call(
                "rename", path,
                lambda: self.builder.copy(quote_key(source_key), quote_key(target_key), rewrite_token),
            )
            progress = decode_rewrite(body, op="rename", path=str(path))
            if progress.done:
                return
            rewrite_token = progress.rewrite_token
            if not rewrite_token:
                raise MetadataDecodeError("unfinished copy without a rewriteToken", op="rename", path=str(path))

    async def _walk(self, prefix: str, path: Any) -> AsyncIterator[str]:
        """Every object name under ``prefix``, at any depth."""
        page_token = None
        while True:
            page = await self._list_page(
                prefix, "rename", path, page_token=page_token, max_results=self.page_size, delimiter=False
            )
            for item in page.items or []:
                yield item.name
            page_token = page.next_page_token
            if not page_token:
                return

    async def rmd(self, path: str, user: Any = None) -> None:
        """Remove the directory marker. Refuses non-empty directories."""
        with begin_operation("rmd"):
            await self._rmd(path)

    async def _rmd(self, path: Any) -> None:
        key = as_directory(self._object_key(path, "rmd"))
        has_marker = False
        page_token = None
        while True:
            page = await self._list_page(key, "rmd", path, page_token=page_token, max_results=2)
            items = page.items or []
            has_marker = has_marker or any(item.name == key for item in items)
            if any(item.name != key for item in items) or any(sub != key for sub in page.prefixes or []):
                raise NotEmpty("directory not empty", op="rmd", path=str(path))
            page_token = page.next_page_token
            if not page_token:
                break
        if not has_marker:
            raise NotFound("no such directory", op="rmd", path=str(path))
        await self._call("rmd", path, lambda: self.builder.delete(quote_key(key)))
        logger.info("directory_removed", path=key)

    async def health_check(self) -> HealthCheckResult:
        """
        Check backend health.

        Verifies:
        - A token can be obtained
        - The bucket is reachable with it
        """
        checks = {"token_acquired": False, "bucket_accessible": False}
        started = time.monotonic()
        try:
            await self._token()
            checks["token_acquired"] = True
            await self._call("health_check", self.bucket, self.builder.bucket_info)
            checks["bucket_accessible"] = True
        except StorageError as exc:
            logger.warning("health_check_failed", bucket=self.bucket, kind=exc.kind.value)
            return HealthCheckResult(
                healthy=False,
                message=f"Health check failed: {exc}",
                details={"checks": checks, "bucket": self.bucket, "error": str(exc), "kind": exc.kind.value},
                backend="gcs",
                latency_ms=(time.monotonic() - started) * 1000,
            )
        return HealthCheckResult(
            healthy=True,
            message="Cloud storage backend healthy",
            details={"checks": checks, "bucket": self.bucket},
            backend="gcs",
            latency_ms=(time.monotonic() - started) * 1000,
        )

    async def close(self) -> None:
        await self.transport.close()

    def __repr__(self) -> str:
        return f"<CloudStorage bucket={self.bucket}>"
