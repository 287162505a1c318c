"""Factory helpers for the notification pipeline."""

from __future__ import annotations

import logging

import httpx

from app.config import Settings
from app.core.database import get_session_factory
from app.notifications.contracts import ApnsCredentials, PushSender
from app.notifications.provider_token import ProviderTokenCache
from app.notifications.push_sender import ApnsConfig, ApnsPushSender, UnconfiguredPushSender
from app.notifications.router import EventRouter

logger = logging.getLogger(__name__)

_event_router: EventRouter | None = None
_http_client: httpx.AsyncClient | None = None


def build_http_client(settings: Settings) -> httpx.AsyncClient:
  """HTTP/2 client shared by all sends; APNs only speaks HTTP/2."""
  limits = httpx.Limits(max_connections=settings.push_max_concurrency, max_keepalive_connections=settings.push_max_concurrency)
  return httpx.AsyncClient(http2=True, timeout=httpx.Timeout(settings.apns_timeout_seconds), limits=limits, trust_env=False)


def build_push_sender(settings: Settings, *, client: httpx.AsyncClient | None = None) -> PushSender:
  """Construct the APNs sender, or a sender that reports the missing configuration."""
  missing = settings.missing_apns_keys
  if missing:
    logger.warning("APNs push disabled; missing configuration: %s", ", ".join(missing))
    return UnconfiguredPushSender(missing_keys=missing)

  credentials = ApnsCredentials(key_id=settings.apns_key_id or "", team_id=settings.apns_team_id or "", private_key_pem=settings.apns_private_key or "")
  token_cache = ProviderTokenCache(credentials=credentials, refresh_interval_seconds=settings.apns_token_refresh_seconds)
  config = ApnsConfig(base_url=settings.apns_base_url, topic=settings.apns_bundle_id or "")
  logger.info("APNs push enabled environment=%s topic=%s", settings.apns_environment, config.topic)
  return ApnsPushSender(config=config, token_cache=token_cache, client=client or build_http_client(settings))


def get_event_router(settings: Settings) -> EventRouter:
  """Build the process-wide router once so the provider token cache is shared."""
  global _event_router, _http_client
  if _event_router is None:
    _http_client = build_http_client(settings)
    push_sender = build_push_sender(settings, client=_http_client)
    _event_router = EventRouter(session_factory=get_session_factory(), push_sender=push_sender, max_push_concurrency=settings.push_max_concurrency)
  return _event_router


async def close_event_router() -> None:
  """Release the shared HTTP client on shutdown."""
  global _event_router, _http_client
  if _http_client is not None:
    await _http_client.aclose()
  _http_client = None
  _event_router = None
