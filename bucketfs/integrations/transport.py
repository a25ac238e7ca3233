"""bucketfs/integrations/transport.py
HTTPS transport for object store requests.

Responsibilities:
- Define the request/response shapes exchanged with the backend (`HttpRequest`, `HttpResponse`)
- `Transport` protocol: `send(request)` is an async context manager yielding a response
  whose body is consumed as a sequence of byte chunks
- `AiohttpTransport` implements it over one pooled `aiohttp.ClientSession`

Notes:
- Connection, TLS and timeout failures raise `TransportError`; an HTTP error
  status is a normal response and is left to the caller to map.
- URLs arrive already percent-encoded and are passed through untouched.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, AsyncIterator, Dict, Mapping, Optional, Protocol

import aiohttp
from yarl import URL

from bucketfs.config import settings
from bucketfs.file_access.errors import TransportError
from bucketfs.monitoring.logger import log


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    # None, bytes, or an async iterator of byte chunks
    body: Any = None


@dataclass
class HttpResponse:
    status: int
    headers: Mapping[str, str]
    chunks: AsyncIterator[bytes]

    async def read(self) -> bytes:
        buffer = bytearray()
        async for chunk in self.chunks:
            buffer.extend(chunk)
        return bytes(buffer)


class Transport(Protocol):
    """Sends one request and yields its response while the body is consumed."""

    def send(self, request: HttpRequest) -> AsyncContextManager[HttpResponse]:
        ...

    async def close(self) -> None:
        ...


def _failure_reason(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timeout"
    if isinstance(exc, (aiohttp.ClientSSLError, aiohttp.ServerFingerprintMismatch)):
        return "tls"
    return "connection"


class AiohttpTransport:
    """Pooled HTTPS transport shared by every operation of one backend."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
        pool_size: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ):
        self._external_session = session
        self._session: Optional[aiohttp.ClientSession] = session
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.pool_size = pool_size if pool_size is not None else settings.HTTP_POOL_SIZE
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=self.pool_size),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Accept": "application/json"},
            )
        return self._session

    @asynccontextmanager
    async def send(self, request: HttpRequest) -> AsyncIterator[HttpResponse]:
        session = self._get_session()
        try:
            async with session.request(
                request.method,
                URL(request.url, encoded=True),
                headers=request.headers,
                data=request.body,
            ) as resp:
                yield HttpResponse(
                    status=resp.status,
                    headers=resp.headers,
                    chunks=resp.content.iter_chunked(self.chunk_size),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            reason = _failure_reason(exc)
            log("WARNING", f"{request.method} request failed before completion: {exc!r}",
                module="transport", reason=reason)
            raise TransportError(str(exc) or type(exc).__name__, reason=reason) from exc

    async def close(self) -> None:
        # Only close sessions created here; an injected session belongs to the caller
        if self._external_session is not None:
            return
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
