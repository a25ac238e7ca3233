# bucketfs/config.py
"""
Configuration management using Pydantic Settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field
from typing import Optional

READ_WRITE_SCOPE = "https://www.googleapis.com/auth/devstorage.read_write"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    LOG_LEVEL: str = "INFO"
    # Bucket served by build_backend(); every request is scoped to it
    GCS_BUCKET: Optional[str] = None
    # Override for emulators, e.g. http://localhost:4443
    GCS_API_BASE_URL: str = "https://www.googleapis.com"
    # Authentication mode: 'service_account' (JWT bearer via google-auth) or 'static'
    GCS_AUTH_MODE: str = "service_account"
    # Accept either GCS_SERVICE_ACCOUNT_KEY_PATH or the conventional GOOGLE_APPLICATION_CREDENTIALS
    GCS_SERVICE_ACCOUNT_KEY_PATH: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("GCS_SERVICE_ACCOUNT_KEY_PATH", "GOOGLE_APPLICATION_CREDENTIALS"),
    )
    GCS_ACCESS_TOKEN: Optional[str] = None  # Test token only; do NOT hardcode in code
    GCS_TOKEN_SCOPE: str = READ_WRITE_SCOPE
    HTTP_TIMEOUT_SECONDS: float = 60.0
    HTTP_POOL_SIZE: int = 4
    UPLOAD_CHUNK_SIZE: int = 64 * 1024
    LIST_PAGE_SIZE: Optional[int] = None


settings = Settings()
