# Fichier: lms/backend/app/core/config.py
from pydantic_settings import BaseSettings
from typing import Optional, List
from pydantic import AnyHttpUrl, ValidationError, field_validator
import sys


class Settings(BaseSettings):
    DATABASE_URL: str
    ENVIRONMENT: str = "development"
    API_PREFIX: str = "/api/v1"

    # --- Auth ---
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    FRONTEND_BASE_URL: AnyHttpUrl = "http://localhost:3000"
    BACKEND_BASE_URL: AnyHttpUrl = "http://localhost:8000"
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # --- E-mail ---
    MAIL_PROVIDER: str = "console"  # "resend" | "sendgrid" | "console"
    EMAIL_FROM: str = "no-reply@localhost"
    PLATFORM_NAME: str = "Mentversity"
    RESEND_API_KEY: Optional[str] = None
    SENDGRID_API_KEY: Optional[str] = None

    # --- Object storage ---
    STORAGE_PROVIDER: str = "local"  # "local" | "supabase"
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 200 * 1024 * 1024
    SUPABASE_URL: AnyHttpUrl | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_STORAGE_BUCKET: str = "lms"

    # --- Content rules ---
    REQUIRE_COURSE_THUMBNAIL: bool = True
    CLEAR_GRADE_ON_RESUBMIT: bool = True

    # --- Bootstrap admin ---
    DEFAULT_ADMIN_EMAIL: Optional[str] = None
    DEFAULT_ADMIN_PASSWORD: Optional[str] = None

    # Performance instrumentation
    SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS: int = 300

    class Config:
        env_file = ".env"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: str) -> str:
        """Rewrite Postgres URLs so they always target the asyncpg driver.

        Managed Postgres providers still hand out ``postgres://`` URLs, which
        SQLAlchemy no longer understands. SQLite and other backends are left
        alone.
        """

        if not isinstance(value, str) or "+asyncpg" in value:
            return value

        for prefix in ("postgres://", "postgresql://", "postgresql+psycopg2://", "postgresql+psycopg://"):
            if value.startswith(prefix):
                return "postgresql+asyncpg://" + value[len(prefix):]

        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


def _log_settings_validation_error(exc: ValidationError) -> None:
    """Print every missing or invalid environment variable to stderr.

    The settings object is built at import time, so the traceback alone
    rarely says which variable is at fault.
    """

    print("Configuration error while loading environment variables:", file=sys.stderr)

    details = exc.errors()
    if not details:
        print(exc, file=sys.stderr)
        return

    for error in details:
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "Unknown validation error")
        type_name = error.get("type")
        hint = f"{message} (type={type_name})" if type_name else message
        print(f"  - {location}: {hint}", file=sys.stderr)


try:
    settings = Settings()
except ValidationError as exc:  # pragma: no cover - exercised at runtime
    _log_settings_validation_error(exc)
    raise
