"""Shared fixtures for the notification service tests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

import pytest

from app.config import Settings, get_database_settings, get_settings

TRIGGER_SECRET = "trigger-secret-for-tests"


def _base_settings() -> Settings:
  return Settings(
    environment="test",
    debug=False,
    log_max_bytes=1024,
    log_backup_count=1,
    pg_dsn=None,
    pg_connect_timeout=5,
    pg_command_timeout=10,
    trigger_secret=TRIGGER_SECRET,
    apns_key_id="KEY1234567",
    apns_private_key=None,
    apns_team_id="TEAM123456",
    apns_bundle_id="com.example.social",
    apns_environment="sandbox",
    apns_timeout_seconds=5.0,
    apns_token_refresh_seconds=3000,
    push_max_concurrency=4,
  )


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
  def _make(**overrides) -> Settings:
    return replace(_base_settings(), **overrides)

  return _make


@pytest.fixture(autouse=True)
def _clear_settings_cache():
  get_settings.cache_clear()
  get_database_settings.cache_clear()
  yield
  get_settings.cache_clear()
  get_database_settings.cache_clear()



@pytest.fixture
def trigger_headers() -> dict[str, str]:
  return {"x-trigger-secret": TRIGGER_SECRET}
