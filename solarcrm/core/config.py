"""Configuration module for the SolarCRM application."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from solarcrm.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    DB_RLS_ROLE: str
    JWT_SECRET: str
    SESSION_MAX_AGE_DAYS: int
    SESSION_COOKIE_NAME: str
    SUPABASE_URL: str | None
    SUPABASE_ANON_KEY: str | None
    SUPABASE_JWT_SECRET: str
    SUPABASE_AUTH_COOKIE: str
    SECONDARY_TOKEN_REFRESH_MINUTES: int
    STORAGE_BUCKET: str
    SIGNED_URL_TTL_SECONDS: int
    MAX_UPLOAD_BYTES: int
    HTTP_TIMEOUT_SECONDS: int
    AGENT_STATUS_UPDATES_ENABLED: bool
    EXPOSE_ERROR_DETAILS: bool
    API_HOST: str
    API_PORT: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))

    config = Config(
        APP_NAME="SolarCRM",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./solarcrm.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        DB_RLS_ROLE=os.getenv("DB_RLS_ROLE", "authenticated"),
        JWT_SECRET=os.getenv("JWT_SECRET", "change_me_jwt_secret"),
        SESSION_MAX_AGE_DAYS=int(os.getenv("SESSION_MAX_AGE_DAYS", "7")),
        SESSION_COOKIE_NAME=os.getenv("SESSION_COOKIE_NAME", "session_token"),
        SUPABASE_URL=os.getenv("SUPABASE_URL"),
        SUPABASE_ANON_KEY=os.getenv("SUPABASE_ANON_KEY"),
        SUPABASE_JWT_SECRET=os.getenv("SUPABASE_JWT_SECRET", "change_me_supabase_jwt_secret"),
        SUPABASE_AUTH_COOKIE=os.getenv("SUPABASE_AUTH_COOKIE", "sb-access-token"),
        SECONDARY_TOKEN_REFRESH_MINUTES=int(os.getenv("SECONDARY_TOKEN_REFRESH_MINUTES", "50")),
        STORAGE_BUCKET=os.getenv("STORAGE_BUCKET", "solar-projects"),
        SIGNED_URL_TTL_SECONDS=int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600")),
        MAX_UPLOAD_BYTES=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
        HTTP_TIMEOUT_SECONDS=int(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
        AGENT_STATUS_UPDATES_ENABLED=_as_bool(os.getenv("AGENT_STATUS_UPDATES_ENABLED"), default=True),
        EXPOSE_ERROR_DETAILS=_as_bool(os.getenv("EXPOSE_ERROR_DETAILS"), default=False),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=int(os.getenv("API_PORT", "8000")),
        API_PREFIX=os.getenv("API_PREFIX", "/api"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", "solarcrm.log"),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.SESSION_MAX_AGE_DAYS < 1:
        raise ConfigurationError("SESSION_MAX_AGE_DAYS must be >= 1.")
    if config.SECONDARY_TOKEN_REFRESH_MINUTES < 1:
        raise ConfigurationError("SECONDARY_TOKEN_REFRESH_MINUTES must be >= 1.")
    if config.SIGNED_URL_TTL_SECONDS < 1:
        raise ConfigurationError("SIGNED_URL_TTL_SECONDS must be >= 1.")
    if config.MAX_UPLOAD_BYTES < 1:
        raise ConfigurationError("MAX_UPLOAD_BYTES must be >= 1.")
    if config.HTTP_TIMEOUT_SECONDS < 1:
        raise ConfigurationError("HTTP_TIMEOUT_SECONDS must be >= 1.")
    if not config.API_PREFIX.startswith("/"):
        raise ConfigurationError("API_PREFIX must start with '/'.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and "change_me" in config.JWT_SECRET:
        raise ConfigurationError("Production JWT_SECRET uses a placeholder value.")
    if config.is_production and "change_me" in config.SUPABASE_JWT_SECRET:
        raise ConfigurationError("Production SUPABASE_JWT_SECRET uses a placeholder value.")
    if config.is_production and not config.SUPABASE_URL:
        raise ConfigurationError("SUPABASE_URL is required in production.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
