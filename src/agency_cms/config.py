"""
# Application Configuration

This module defines the **central configuration** of the Agency CMS service. Settings are
loaded once, validated with Pydantic, and handed explicitly to the components that need them
(the content store, the session guard, the media pipeline and the migration utility).

## Configuration Sources

Values are resolved in the following order of precedence:

1.  **Config file** named by the `AGENCY_CMS_CONFIG_PATH` environment variable.
2.  **Dotenv file** `.env` in the project root.
3.  **Environment variables** (always consulted, used alone when no file exists).

## Configuration Groups

| Group            | Fields                                                            |
|------------------|-------------------------------------------------------------------|
| **Server**       | `HOST`, `PORT`, `DEBUG`, `BASE_URL`, `CORS_ORIGINS`               |
| **Content store**| `MONGODB_URL`, `MONGODB_DATABASE`, credentials, pool sizing, retry|
| **Session guard**| `ADMIN_PASSWORD`, cookie name/lifetime, validation mode, prefixes |
| **Media**        | Upload directory, size limits, Netlify Blobs site id / token      |
| **Migration**    | `SQLITE_DB_PATH`                                                  |
| **Logging**      | `LOG_LEVEL`                                                       |

## Usage

```python
from agency_cms.config import settings

if settings.blobs_available:
    ...
```

Tests and the migration CLI build their own `Settings(...)` instance and pass it down instead
of relying on the module-level object.
"""

import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "AGENCY_CMS_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent

SESSION_VALIDATION_MODES = ("presence", "store")


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determine the configuration file to load.

    Checks the `AGENCY_CMS_CONFIG_PATH` environment variable first, then a `.env` file in the
    project root. Returns `None` when neither exists, in which case only the process
    environment is used.

    Returns:
        Optional[str]: Absolute path of the configuration file, or `None`.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=False)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode, CORS origins.
    *   **Content store**: MongoDB connection string, database, credentials, pool sizing and
        the bounded connection retry count used at startup.
    *   **Session guard**: The single shared admin secret and the session cookie contract.
    *   **Media**: Local upload directory and the optional Netlify Blobs object store.
    *   **Migration**: Location of the legacy SQLite database.

    **Validation:**
    Pool sizes, timeouts and retry counts must be positive; the session validation mode must
    be one of `presence` or `store`.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = True
    BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: str = "http://localhost:3000"

    # Content store (MongoDB)
    MONGODB_URL: str = Field(default="", validation_alias=AliasChoices("MONGODB_URL", "MONGODB_URI", "MONGO_URI"))
    MONGODB_DATABASE: str = "agency_blog"
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None
    MONGODB_MIN_POOL_SIZE: int = 2
    MONGODB_MAX_POOL_SIZE: int = 10
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_CONNECT_RETRIES: int = 3

    # Session guard
    ADMIN_PASSWORD: SecretStr = SecretStr("")
    ADMIN_SESSION_COOKIE: str = "admin_session"
    ADMIN_SESSION_DAYS: int = 7
    ADMIN_SESSION_VALIDATION: str = "presence"
    ADMIN_PREFIX: str = "/admin"
    ADMIN_LOGIN_PATH: str = "/admin/login"
    ADMIN_API_PREFIX: str = "/api/admin"
    ADMIN_AUTH_API_PREFIX: str = "/api/admin/auth"

    # Content defaults
    DEFAULT_AUTHOR_NAME: str = "Team AlmaStack"
    DEFAULT_AUTHOR_IMAGE: str = "/images/authors/default-avatar.webp"

    # Media and object store
    UPLOAD_DIR: str = str(PROJECT_ROOT / "public" / "images" / "blog")
    PUBLIC_UPLOAD_PREFIX: str = "/images/blog"
    MAX_UPLOAD_MB: int = 10
    IMAGE_MAX_WIDTH: int = 1920
    NETLIFY_SITE_ID: Optional[str] = Field(default=None, validation_alias=AliasChoices("NETLIFY_SITE_ID", "SITE_ID"))
    NETLIFY_AUTH_TOKEN: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("NETLIFY_AUTH_TOKEN", "NETLIFY_TOKEN")
    )
    NETLIFY_API_URL: str = "https://api.netlify.com"
    BLOB_STORE_NAME: str = "media-uploads"

    # Migration
    SQLITE_DB_PATH: str = str(PROJECT_ROOT / "blog.db")

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator(
        "MONGODB_MIN_POOL_SIZE",
        "MONGODB_MAX_POOL_SIZE",
        "MONGODB_SERVER_SELECTION_TIMEOUT",
        "MONGODB_CONNECTION_TIMEOUT",
        "MONGODB_CONNECT_RETRIES",
        "ADMIN_SESSION_DAYS",
        "MAX_UPLOAD_MB",
        "IMAGE_MAX_WIDTH",
        mode="before",
    )
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        """
        Validates that numeric settings are positive integers.

        Raises:
            ValueError: If the value is not a positive integer.
        """
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @field_validator("ADMIN_SESSION_VALIDATION", mode="before")
    @classmethod
    def validate_session_mode(cls, v: Any) -> str:
        value = str(v).strip().lower()
        if value not in SESSION_VALIDATION_MODES:
            raise ValueError(f"ADMIN_SESSION_VALIDATION must be one of {', '.join(SESSION_VALIDATION_MODES)}")
        return value

    @property
    def is_production(self) -> bool:
        """`True` when running with `DEBUG=False`."""
        return not self.DEBUG

    @property
    def blobs_available(self) -> bool:
        """
        Whether the Netlify Blobs object store is configured.

        Both a site id and an auth token are required; otherwise uploads fall back to the
        local filesystem.
        """
        return bool(self.NETLIFY_SITE_ID and self.NETLIFY_AUTH_TOKEN and self.NETLIFY_AUTH_TOKEN.get_secret_value())

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024


# Global settings instance
settings: Settings = Settings()
