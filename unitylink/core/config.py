"""
Centralised application settings loaded from environment / .env file.

Uses pydantic-settings so every value can be overridden via env vars
or the .env file at the project root.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

_DEFAULT_SECRET = "CHANGE-ME-TO-A-RANDOM-64-CHAR-HEX-STRING-IN-PRODUCTION"


class Settings(BaseSettings):
    # ── Project ──────────────────────────────────────────────────────
    PROJECT_NAME: str = "UnityLink Session"
    VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"

    # ── Remote user service ─────────────────────────────────────────
    # Unset or placeholder → the offline mock dataset is used for the
    # whole process lifetime.
    API_BASE_URL: str = ""
    REMOTE_TIMEOUT_SECONDS: float = 8.0
    MOCK_DEFAULT_PASSWORD: str = "password123"

    # ── Secure session store ────────────────────────────────────────
    SESSION_DB_URL: str = "sqlite+aiosqlite:///./session_store.db"
    SECRET_KEY: str = _DEFAULT_SECRET
    # Fernet key (urlsafe base64, 32 bytes). Derived from SECRET_KEY if empty.
    STORAGE_ENCRYPTION_KEY: str = ""

    # ── Auth session ────────────────────────────────────────────────
    AUTH_GUARD_STALE_RESULTS: bool = False
    ALGORITHM: str = "HS256"
    SESSION_TOKEN_EXPIRE_DAYS: int = 7

    # ── CORS ─────────────────────────────────────────────────────────
    CORS_ORIGINS: list[str] = [
        "http://localhost",
        "http://localhost:8081",
        "http://localhost:19006",
        "http://127.0.0.1:8081",
    ]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v: object) -> list[str]:
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v  # type: ignore[return-value]

    @field_validator("API_BASE_URL", mode="before")
    @classmethod
    def _strip_base_url(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    # ── Logging ──────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()

if settings.SECRET_KEY == _DEFAULT_SECRET:
    import logging

    logging.getLogger("unitylink.core.config").warning(
        "⚠️  WARNING: You are running with the default INSECURE Secret Key! "
        "Update the SECRET_KEY in your .env file immediately."
    )
