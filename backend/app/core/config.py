# backend/app/core/config.py

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-secret-change-me"


def _normalize_asyncpg_dsn(url: str) -> str:
    """
    asyncpg only understands plain postgresql:// DSNs and rejects some libpq
    query parameters (channel_binding). SQLAlchemy-style driver suffixes
    (postgresql+asyncpg://) and Heroku-style postgres:// are rewritten too.
    """
    parts = urlsplit(url.strip())

    scheme = parts.scheme.split("+", 1)[0]
    if scheme == "postgres":
        scheme = "postgresql"

    query = parts.query
    if query:
        params = parse_qsl(query, keep_blank_values=True)
        filtered = [(k, v) for (k, v) in params if k not in {"channel_binding"}]
        query = urlencode(filtered, doseq=True)

    return urlunsplit((scheme, parts.netloc, parts.path, query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | testing | staging | production
    ENVIRONMENT: str = "development"

    # -----------------------------
    # DB
    # -----------------------------
    # When set, the networked Postgres engine is used; otherwise SQLite.
    DATABASE_URL: Optional[str] = None
    SQLITE_PATH: str = "database.sqlite"
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 10

    # -----------------------------
    # JWT / credentials
    # -----------------------------
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    INVITATION_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    BCRYPT_ROUNDS: int = 12

    # -----------------------------
    # Plans / throttling
    # -----------------------------
    FREE_PLAN_NOTE_LIMIT: int = 3
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_WINDOW_MINUTES: int = 15
    LOGIN_BLOCK_MINUTES: int = 30

    # -----------------------------
    # Email
    # -----------------------------
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM: Optional[str] = None
    APP_URL: str = "http://localhost:3000"

    # -----------------------------
    # HTTP / files / logging
    # -----------------------------
    CORS_ORIGINS: str = "*"
    UPLOAD_DIR: str = "uploads"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    REQUEST_ID_HEADER: str = "X-Request-ID"

    @property
    def use_postgres(self) -> bool:
        return bool(self.DATABASE_URL and self.DATABASE_URL.strip())

    @property
    def DATABASE_URL_ASYNCPG(self) -> str:
        if not self.use_postgres:
            raise ValueError("DATABASE_URL is not configured")
        return _normalize_asyncpg_dsn(self.DATABASE_URL)

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_dev(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"development", "testing", "test", "dev"}

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        # Never run staging/production with a placeholder secret.
        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == DEV_JWT_SECRET:
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if not 4 <= self.BCRYPT_ROUNDS <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")


# this must exist for: `from app.core.config import settings`
settings = Settings()
