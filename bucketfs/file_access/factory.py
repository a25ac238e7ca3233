# bucketfs/file_access/factory.py
"""
Factory for building the storage backend from configuration.
"""
from typing import Optional

from bucketfs.config import Settings, settings
from bucketfs.file_access.cloud_storage import CloudStorage
from bucketfs.integrations.gcs_auth import TokenProvider, get_token_provider
from bucketfs.integrations.transport import AiohttpTransport
from bucketfs.monitoring.logger import log


def build_backend(
    config: Optional[Settings] = None,
    bucket: Optional[str] = None,
    token_provider: Optional[TokenProvider] = None,
) -> CloudStorage:
    """
    Build a CloudStorage backend with its own transport and token provider.

    Args:
        config: Settings to read (defaults to the process settings)
        bucket: Overrides GCS_BUCKET
        token_provider: Overrides the provider chosen by GCS_AUTH_MODE

    Raises:
        ValueError: If no bucket is configured or GCS_AUTH_MODE is unknown
    """
    config = config or settings
    bucket = bucket or config.GCS_BUCKET
    if not bucket:
        raise ValueError("No bucket configured. Set GCS_BUCKET or pass bucket=...")

    transport = AiohttpTransport(
        timeout=config.HTTP_TIMEOUT_SECONDS,
        pool_size=config.HTTP_POOL_SIZE,
        chunk_size=config.UPLOAD_CHUNK_SIZE,
    )
    backend = CloudStorage(
        bucket,
        token_provider or get_token_provider(config),
        transport=transport,
        base_url=config.GCS_API_BASE_URL,
        scopes=[config.GCS_TOKEN_SCOPE],
        chunk_size=config.UPLOAD_CHUNK_SIZE,
        page_size=config.LIST_PAGE_SIZE,
    )
    log("INFO", f"Storage backend ready for bucket {bucket}", module="factory",
        auth_mode=config.GCS_AUTH_MODE)
    return backend


__all__ = ["build_backend"]
