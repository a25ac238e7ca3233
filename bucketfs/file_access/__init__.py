"""
bucketfs file access layer.

Filesystem-style access to a flat object store:
- ``StorageBackend`` / ``Fileinfo``: the interface front ends drive (base_fs)
- ``CloudStorage``: Google Cloud Storage implementation (cloud_storage)
- ``build_backend``: wiring from settings (factory)
- the ``StorageError`` hierarchy (errors)

Import ``CloudStorage`` and ``build_backend`` from their modules; this
package only re-exports the leaf types so the integrations layer can import
the errors without pulling in the backend.
"""

from bucketfs.file_access.base_fs import Fileinfo, HealthCheckResult, StorageBackend
from bucketfs.file_access.errors import (
    AuthorizationError,
    ErrorKind,
    InvalidPath,
    MetadataDecodeError,
    NotEmpty,
    NotFound,
    RequestRejected,
    StorageError,
    TransportError,
    Unavailable,
    Unsupported,
)
from bucketfs.file_access.metadata import ObjectMetadata
from bucketfs.file_access.object_reader import ObjectReader

__all__ = [
    "Fileinfo",
    "HealthCheckResult",
    "StorageBackend",
    "ObjectMetadata",
    "ObjectReader",
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
