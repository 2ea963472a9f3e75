"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "hi", "bn", "ta", "mr")


@dataclass(frozen=True)
class Settings:
  """Typed settings for the AuraTravel notification service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  push_notifications_enabled: bool
  default_language: str
  task_secret: str | None
  history_page_limit: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
  if "*" in origins:
    raise ValueError("AURA_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""
  if raw is None:
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""
  environment = os.getenv("AURA_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("AURA_DEBUG"))

  log_backup_count = int(os.getenv("AURA_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("AURA_LOG_BACKUP_COUNT must be zero or a positive integer.")

  default_language = (os.getenv("AURA_DEFAULT_LANGUAGE") or "en").strip().lower()
  if default_language not in SUPPORTED_LANGUAGES:
    raise ValueError(f"AURA_DEFAULT_LANGUAGE must be one of: {', '.join(SUPPORTED_LANGUAGES)}")

  # Push stays on unless explicitly disabled; missing Firebase credentials disable it at build time.
  push_notifications_enabled = _parse_bool(os.getenv("AURA_PUSH_NOTIFICATIONS_ENABLED"), default=True)

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("AURA_ALLOWED_ORIGINS")),
    log_max_bytes=_positive_int("AURA_LOG_MAX_BYTES", "5242880"),
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("AURA_LOG_HTTP_4XX")),
    pg_dsn=_optional_str(os.getenv("AURA_PG_DSN") or os.getenv("DATABASE_URL")),
    pg_connect_timeout=_positive_int("AURA_PG_CONNECT_TIMEOUT", "5"),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    push_notifications_enabled=push_notifications_enabled,
    default_language=default_language,
    task_secret=_optional_str(os.getenv("AURA_TASK_SECRET")),
    history_page_limit=_positive_int("AURA_NOTIFICATION_HISTORY_PAGE_LIMIT", "100"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  pg_connect_timeout = _positive_int("AURA_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = _optional_str(os.getenv("AURA_PG_DSN") or os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=_parse_bool(os.getenv("AURA_DEBUG")), pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
