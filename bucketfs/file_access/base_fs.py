# bucketfs/file_access/base_fs.py
"""
Base filesystem interface exposed to file-serving front ends.

This interface defines the contract a front end (an FTP server, for instance)
drives: stat, list, get, put, delete, mkd, rename and rmd over '/'-separated
logical paths. Every operation accepts an opaque ``user`` identity; access
control is the front end's job and backends ignore it.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from bucketfs.file_access.metadata import ObjectMetadata
from bucketfs.file_access.object_reader import ObjectReader
from bucketfs.file_access.path_codec import basename


@dataclass(frozen=True)
class Fileinfo:
    """A listing entry: logical path plus its metadata."""
    path: str
    metadata: ObjectMetadata

    @property
    def name(self) -> str:
        return basename(self.path)


@dataclass
class HealthCheckResult:
    """Result of a health check."""
    healthy: bool
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    backend: Optional[str] = None
    latency_ms: Optional[float] = None


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All methods are async; ``list`` is an async generator. Failures raise
    ``StorageError`` subclasses from ``bucketfs.file_access.errors``.
    """

    @abstractmethod
    async def stat(self, path: str, user: Any = None) -> ObjectMetadata:
        """
        Get metadata for a file or directory.

        Raises:
            NotFound: If nothing exists at path
        """

    @abstractmethod
    def list(self, path: str, user: Any = None) -> AsyncIterator[Fileinfo]:
        """
        List one directory level.

        Yields files and subdirectories lazily; the sequence can be consumed once.
        An empty or missing directory yields nothing.
        """

    @abstractmethod
    async def get(self, path: str, user: Any = None) -> ObjectReader:
        """
        Download a file.

        Returns:
            ObjectReader over the complete contents

        Raises:
            NotFound: If file doesn't exist
        """

    @abstractmethod
    async def put(self, path: str, source: Any, user: Any = None) -> int:
        """
        Upload a file, replacing any existing one.

        Args:
            path: File path
            source: bytes, a binary file object or an async byte stream

        Returns:
            Size of the stored object as reported by the backend
        """

    @abstractmethod
    async def delete(self, path: str, user: Any = None) -> None:
        """
        Delete a file.

        Raises:
            NotFound: If file doesn't exist
        """

    @abstractmethod
    async def mkd(self, path: str, user: Any = None) -> None:
        """Create a directory."""

    @abstractmethod
    async def rename(self, from_path: str, to_path: str, user: Any = None) -> None:
        """Move a file or directory."""

    @abstractmethod
    async def rmd(self, path: str, user: Any = None) -> None:
        """
        Remove an empty directory.

        Raises:
            NotEmpty: If the directory still has entries
            NotFound: If the directory doesn't exist
        """

    @abstractmethod
    async def health_check(self) -> HealthCheckResult:
        """
        Check backend health and connectivity.

        Returns:
            HealthCheckResult with health status and diagnostics
        """

    async def close(self) -> None:
        """Release shared resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
