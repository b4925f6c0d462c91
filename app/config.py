"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Values already present in the process environment win over the repo-root .env file.
load_dotenv(Path(__file__).resolve().parents[1] / ".env", override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the notification engine."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  push_notifications_enabled: bool
  push_vapid_public_key: str | None
  push_vapid_private_key: str | None
  push_vapid_sub: str | None
  push_timeout_seconds: float
  scheduler_enabled: bool
  scheduler_timezone: str
  maintenance_hour: int
  maintenance_minute: int
  task_secret: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  # Origins are optional here because the live channel and REST routes are usually mounted behind a gateway.
  if not raw:
    return ()

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("VCARD_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("VCARD_ENV", "development").lower()
  debug = _parse_bool(os.getenv("VCARD_DEBUG"))

  log_max_bytes = int(os.getenv("VCARD_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("VCARD_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("VCARD_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("VCARD_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("VCARD_LOG_HTTP_4XX"))

  push_notifications_enabled = _parse_bool(os.getenv("VCARD_PUSH_NOTIFICATIONS_ENABLED"))
  push_vapid_public_key = _optional_str(os.getenv("VCARD_PUSH_VAPID_PUBLIC_KEY"))
  push_vapid_private_key = _optional_str(os.getenv("VCARD_PUSH_VAPID_PRIVATE_KEY"))
  push_vapid_sub = _optional_str(os.getenv("VCARD_PUSH_VAPID_SUB"))
  push_timeout_seconds = float(os.getenv("VCARD_PUSH_TIMEOUT_SECONDS", "10"))
  if push_timeout_seconds <= 0:
    raise ValueError("VCARD_PUSH_TIMEOUT_SECONDS must be positive.")

  # Validate push configuration only when push notifications are enabled.
  if push_notifications_enabled:
    if not push_vapid_public_key:
      raise ValueError("VCARD_PUSH_VAPID_PUBLIC_KEY must be set when push notifications are enabled.")

    if not push_vapid_private_key:
      raise ValueError("VCARD_PUSH_VAPID_PRIVATE_KEY must be set when push notifications are enabled.")

    if not push_vapid_sub:
      raise ValueError("VCARD_PUSH_VAPID_SUB must be set when push notifications are enabled.")

    if not (push_vapid_sub.startswith("mailto:") or push_vapid_sub.startswith("https://")):
      raise ValueError("VCARD_PUSH_VAPID_SUB must start with 'mailto:' or 'https://'.")

  # The scheduler defaults to on; tests and one-off scripts disable it explicitly.
  raw_scheduler_enabled = os.getenv("VCARD_SCHEDULER_ENABLED")
  scheduler_enabled = True if raw_scheduler_enabled is None else _parse_bool(raw_scheduler_enabled)
  scheduler_timezone = (os.getenv("VCARD_SCHEDULER_TIMEZONE") or "UTC").strip()
  try:
    ZoneInfo(scheduler_timezone)
  except (ZoneInfoNotFoundError, ValueError) as exc:
    raise ValueError(f"VCARD_SCHEDULER_TIMEZONE is not a known timezone: {scheduler_timezone}") from exc

  maintenance_hour = int(os.getenv("VCARD_MAINTENANCE_HOUR", "0"))
  if not 0 <= maintenance_hour <= 23:
    raise ValueError("VCARD_MAINTENANCE_HOUR must be between 0 and 23.")

  maintenance_minute = int(os.getenv("VCARD_MAINTENANCE_MINUTE", "0"))
  if not 0 <= maintenance_minute <= 59:
    raise ValueError("VCARD_MAINTENANCE_MINUTE must be between 0 and 59.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("VCARD_ALLOWED_ORIGINS")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=os.getenv("VCARD_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=int(os.getenv("VCARD_PG_CONNECT_TIMEOUT", "5")),
    push_notifications_enabled=push_notifications_enabled,
    push_vapid_public_key=push_vapid_public_key,
    push_vapid_private_key=push_vapid_private_key,
    push_vapid_sub=push_vapid_sub,
    push_timeout_seconds=push_timeout_seconds,
    scheduler_enabled=scheduler_enabled,
    scheduler_timezone=scheduler_timezone,
    maintenance_hour=maintenance_hour,
    maintenance_minute=maintenance_minute,
    task_secret=_optional_str(os.getenv("VCARD_TASK_SECRET")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Keep database configuration isolated so offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("VCARD_DEBUG"))
  pg_connect_timeout = int(os.getenv("VCARD_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("VCARD_PG_CONNECT_TIMEOUT must be a positive integer.")

  pg_dsn = os.getenv("VCARD_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
