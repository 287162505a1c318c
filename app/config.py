"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

APNS_PRODUCTION_HOST = "https://api.push.apple.com"
APNS_SANDBOX_HOST = "https://api.sandbox.push.apple.com"
# Apple rejects provider tokens older than one hour.
APNS_TOKEN_MAX_AGE_SECONDS = 3600


@dataclass(frozen=True)
class Settings:
  """Typed settings for the notification service."""

  environment: str
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  pg_dsn: str | None
  pg_connect_timeout: int
  pg_command_timeout: int
  trigger_secret: str | None
  apns_key_id: str | None
  apns_private_key: str | None
  apns_team_id: str | None
  apns_bundle_id: str | None
  apns_environment: str
  apns_timeout_seconds: float
  apns_token_refresh_seconds: int
  push_max_concurrency: int

  @property
  def apns_base_url(self) -> str:
    """Provider host selected by the configured APNs environment."""
    if self.apns_environment == "production":
      return APNS_PRODUCTION_HOST
    return APNS_SANDBOX_HOST

  @property
  def missing_apns_keys(self) -> list[str]:
    """Names of APNs variables that are not configured."""
    required = {"APNS_KEY_ID": self.apns_key_id, "APNS_KEY_P8": self.apns_private_key, "APNS_TEAM_ID": self.apns_team_id, "APNS_BUNDLE_ID": self.apns_bundle_id}
    return [name for name, value in required.items() if not value]


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  pg_command_timeout: int


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _parse_apns_environment(raw: str | None) -> str:
  normalized = (raw or "sandbox").strip().lower()
  aliases = {"sandbox": "sandbox", "development": "sandbox", "production": "production", "prod": "production"}
  if normalized not in aliases:
    raise ValueError("APNS_ENVIRONMENT must be 'sandbox' or 'production'.")
  return aliases[normalized]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SOCIAL_ENV", "development").lower()
  debug = _parse_bool(os.getenv("SOCIAL_DEBUG"))

  log_max_bytes = _parse_positive_int("SOCIAL_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("SOCIAL_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SOCIAL_LOG_BACKUP_COUNT must be zero or a positive integer.")

  database = get_database_settings()

  apns_timeout_seconds = float(os.getenv("SOCIAL_APNS_TIMEOUT_SECONDS", "10"))
  if apns_timeout_seconds <= 0:
    raise ValueError("SOCIAL_APNS_TIMEOUT_SECONDS must be positive.")

  # Refresh strictly before Apple's one hour expiry so tokens never race it.
  apns_token_refresh_seconds = _parse_positive_int("SOCIAL_APNS_TOKEN_REFRESH_SECONDS", "3000")
  if apns_token_refresh_seconds >= APNS_TOKEN_MAX_AGE_SECONDS:
    raise ValueError("SOCIAL_APNS_TOKEN_REFRESH_SECONDS must be shorter than one hour.")

  return Settings(
    environment=environment,
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    pg_dsn=database.pg_dsn,
    pg_connect_timeout=database.pg_connect_timeout,
    pg_command_timeout=database.pg_command_timeout,
    trigger_secret=_optional_str(os.getenv("SOCIAL_TRIGGER_SECRET")),
    apns_key_id=_optional_str(os.getenv("APNS_KEY_ID")),
    apns_private_key=_optional_str(os.getenv("APNS_KEY_P8")),
    apns_team_id=_optional_str(os.getenv("APNS_TEAM_ID")),
    apns_bundle_id=_optional_str(os.getenv("APNS_BUNDLE_ID")),
    apns_environment=_parse_apns_environment(os.getenv("APNS_ENVIRONMENT")),
    apns_timeout_seconds=apns_timeout_seconds,
    apns_token_refresh_seconds=apns_token_refresh_seconds,
    push_max_concurrency=_parse_positive_int("SOCIAL_PUSH_MAX_CONCURRENCY", "10"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring push configuration."""
  debug = _parse_bool(os.getenv("SOCIAL_DEBUG"))
  pg_connect_timeout = _parse_positive_int("SOCIAL_PG_CONNECT_TIMEOUT", "5")
  pg_command_timeout = _parse_positive_int("SOCIAL_PG_COMMAND_TIMEOUT", "10")

  # Support fallback to DATABASE_URL for hosted Postgres providers.
  pg_dsn = _optional_str(os.getenv("SOCIAL_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout, pg_command_timeout=pg_command_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
