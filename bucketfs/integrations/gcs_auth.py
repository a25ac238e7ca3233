"""bucketfs/integrations/gcs_auth.py
Bearer token providers for the Cloud Storage JSON API.

Responsibilities:
- Provide the token interface used by the backend (`get_token(scopes, refresh=False)`)
- `StaticTokenAuth` serves `GCS_ACCESS_TOKEN` from env for manual testing
- `ServiceAccountAuth` mints tokens from a service-account key via google-auth

Notes:
- Providers own token caching; the backend asks for a token on every call
  and passes `refresh=True` once after the store rejects a token.
- Token values are never logged.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Protocol, Tuple

import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from bucketfs.config import READ_WRITE_SCOPE, Settings, settings
from bucketfs.file_access.errors import AuthorizationError
from bucketfs.monitoring.logger import log

# Refresh this long before the provider-reported expiry
EXPIRY_MARGIN = timedelta(seconds=60)


@dataclass(frozen=True)
class Token:
    token_type: str
    access_token: str

    def header_value(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def __repr__(self) -> str:
        return f"Token(token_type={self.token_type!r}, access_token='***')"


class TokenProvider(Protocol):
    """Supplies a current bearer token for the requested scopes."""

    async def get_token(self, scopes: Iterable[str], refresh: bool = False) -> Token:
        ...


class StaticTokenAuth:
    """Auth provider that reads `GCS_ACCESS_TOKEN` from env/settings.

    This is intended for manual testing with a short-lived token, e.g. from
    `gcloud auth print-access-token`. A refresh cannot produce a new token, so
    a rejected token surfaces as `AuthorizationError` after the single retry.
    """

    def __init__(self, token: Optional[str] = None, token_type: str = "Bearer"):
        self.token = token or settings.GCS_ACCESS_TOKEN
        self.token_type = token_type

    async def get_token(self, scopes: Iterable[str], refresh: bool = False) -> Token:
        if not self.token:
            raise AuthorizationError("GCS_ACCESS_TOKEN not provided for StaticTokenAuth", op="token")
        return Token(self.token_type, self.token)


class ServiceAccountAuth:
    """OAuth2 service-account (JWT bearer) provider for Cloud Storage.

    - Loads the JSON key once per scope set
    - Refreshes through google-auth in a worker thread, so the event loop never blocks
    - Caches the token until `EXPIRY_MARGIN` before it expires
    """

    def __init__(self, key_path: Optional[str] = None, info: Optional[Dict] = None):
        self.key_path = key_path or settings.GCS_SERVICE_ACCOUNT_KEY_PATH
        self.info = info
        self._credentials: Dict[Tuple[str, ...], service_account.Credentials] = {}
        self._lock = asyncio.Lock()

    def _load_credentials(self, scopes: Tuple[str, ...]) -> service_account.Credentials:
        if self.info is not None:
            return service_account.Credentials.from_service_account_info(self.info, scopes=list(scopes))
        if not self.key_path:
            log("ERROR", "ServiceAccountAuth missing GCS_SERVICE_ACCOUNT_KEY_PATH", module="gcs_auth")
            raise AuthorizationError("service account key not configured", op="token")
        return service_account.Credentials.from_service_account_file(self.key_path, scopes=list(scopes))

    def _refresh(self, credentials: service_account.Credentials) -> None:
        credentials.refresh(google.auth.transport.requests.Request())

    @staticmethod
    def _is_fresh(credentials) -> bool:
        if not credentials.token:
            return False
        if credentials.expiry is None:
            return True
        # google-auth reports expiry as naive UTC
        expiry = credentials.expiry.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) < expiry - EXPIRY_MARGIN

    async def get_token(self, scopes: Iterable[str], refresh: bool = False) -> Token:
        key = tuple(sorted(scopes)) or (READ_WRITE_SCOPE,)
        async with self._lock:
            credentials = self._credentials.get(key)
            if credentials is None:
                try:
                    credentials = self._load_credentials(key)
                except (OSError, ValueError) as exc:
                    log("ERROR", f"Cannot load service account key: {exc}", module="gcs_auth")
                    raise AuthorizationError(f"cannot load service account key: {exc}", op="token") from exc
                self._credentials[key] = credentials
            if refresh or not self._is_fresh(credentials):
                try:
                    await asyncio.to_thread(self._refresh, credentials)
                except google.auth.exceptions.GoogleAuthError as exc:
                    log("ERROR", "Service account token refresh failed", module="gcs_auth", error=str(exc))
                    raise AuthorizationError(f"token refresh failed: {exc}", op="token") from exc
                log("INFO", "Service account token acquired", module="gcs_auth", forced=refresh)
            return Token("Bearer", credentials.token)


def get_token_provider(config: Optional[Settings] = None) -> TokenProvider:
    """Choose the token provider for `GCS_AUTH_MODE`."""
    config = config or settings
    mode = (config.GCS_AUTH_MODE or "service_account").lower()
    if mode == "static":
        return StaticTokenAuth(token=config.GCS_ACCESS_TOKEN)
    if mode == "service_account":
        return ServiceAccountAuth(key_path=config.GCS_SERVICE_ACCOUNT_KEY_PATH)
    raise ValueError(f"Unknown GCS_AUTH_MODE: '{mode}'. Expected 'service_account' or 'static'")
