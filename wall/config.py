"""
Runtime configuration helpers for the wall backend and feed client.

Loads DATABASE_URL, the client endpoints and the object storage settings
from the environment, falling back to the .env file in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse, urlunparse

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Backend
    database_url: str = Field(default="sqlite+pysqlite:///./wall.db", alias="DATABASE_URL")
    app_name: str = Field(default="Live Wall", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")

    # Feed client
    api_url: str = Field(default="http://localhost:8000", alias="WALL_API_URL")
    ws_url: str | None = Field(default=None, alias="WALL_WS_URL")
    http_timeout: float = Field(default=30.0, alias="WALL_HTTP_TIMEOUT")
    ws_heartbeat: float = Field(default=20.0, alias="WALL_WS_HEARTBEAT")

    # Object storage (any S3-compatible endpoint)
    storage_access_key: str | None = Field(default=None, alias="STORAGE_ACCESS_KEY")
    storage_secret_key: str | None = Field(default=None, alias="STORAGE_SECRET_KEY")
    storage_region: str | None = Field(default=None, alias="STORAGE_REGION")
    storage_bucket: str = Field(default="post-images", alias="STORAGE_BUCKET")
    storage_endpoint: str | None = Field(default=None, alias="STORAGE_ENDPOINT")
    storage_public_url: str | None = Field(default=None, alias="STORAGE_PUBLIC_URL")
    storage_folder: str = Field(default="user_uploads", alias="STORAGE_FOLDER")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def feed_url(self) -> str:
        """WebSocket URL of the change feed, derived from the API URL when unset."""

        if self.ws_url:
            return self.ws_url
        parsed = urlparse(self.api_url.rstrip("/"))
        scheme = "wss" if parsed.scheme == "https" else "ws"
        return urlunparse(parsed._replace(scheme=scheme, path=f"{parsed.path}/ws/posts"))


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
