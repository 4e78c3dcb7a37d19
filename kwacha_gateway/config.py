# kwacha_gateway/config.py
import os
from typing import FrozenSet, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# origins the browser front-end is served from during development
DEFAULT_ALLOWED_ORIGINS = ("http://localhost:5173", "http://localhost:3000")

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "X-Requested-With"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Listener
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    NODE_ENV: str = Field(
        default="development",
        validation_alias=AliasChoices("NODE_ENV", "ENVIRONMENT"),
    )

    # Abuse guard (fixed window)
    RATE_LIMIT_WINDOW_MS: int = Field(default=900_000, gt=0)
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, gt=0)

    # Origin policy: one extra origin on top of the local dev ones
    CORS_ORIGIN: Optional[str] = None

    # Payload governor / compressor
    BODY_LIMIT_BYTES: int = Field(default=10 * 1024 * 1024, gt=0)
    COMPRESSION_MIN_BYTES: int = 1024

    # Persistence
    DATABASE_URL: str = "sqlite+aiosqlite:///./kwachanow.db"
    HEALTH_DB_TIMEOUT_S: float = Field(default=2.0, gt=0)

    # Shutdown: bound for the drain window and for the persistence release
    SHUTDOWN_GRACE_S: float = Field(default=10.0, gt=0)

    # Static assets
    PUBLIC_DIR: str = os.path.join(_REPO_ROOT, "public")
    DIST_DIR: str = os.path.join(_REPO_ROOT, "dist")

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def rate_limit_window_s(self) -> float:
        return self.RATE_LIMIT_WINDOW_MS / 1000.0

    @property
    def spa_entry(self) -> str:
        return os.path.join(self.DIST_DIR, "index.html")

    def allowed_origins(self) -> FrozenSet[str]:
        """Static dev origins plus CORS_ORIGIN when set. Computed once at startup."""
        origins = set(DEFAULT_ALLOWED_ORIGINS)
        if self.CORS_ORIGIN and self.CORS_ORIGIN.strip():
            origins.add(self.CORS_ORIGIN.strip())
        return frozenset(origins)


settings = Settings()
