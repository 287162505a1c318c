"""APNs push delivery over the HTTP/2 provider API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from http import HTTPStatus

import httpx

from app.notifications.contracts import DeliveryResult, ProviderConfigurationError, ProviderToken, PushMessage, PushSender, TransientProviderError
from app.notifications.provider_token import ProviderTokenCache
from app.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

EXPIRED_PROVIDER_TOKEN = "ExpiredProviderToken"


@dataclass(frozen=True)
class ApnsConfig:
  """Provider endpoint and topic used for every request."""

  base_url: str
  topic: str


@dataclass(frozen=True)
class _Attempt:
  token: ProviderToken
  result: DeliveryResult


def short_token(device_token: str) -> str:
  """Shorten a device token for logs."""
  return f"{device_token[:8]}..." if len(device_token) > 8 else device_token


def _is_expired_token_response(attempt: _Attempt) -> bool:
  result = attempt.result
  return result.status_code == HTTPStatus.FORBIDDEN and EXPIRED_PROVIDER_TOKEN in result.raw_response


class ApnsPushSender(PushSender):
  """`httpx` backed sender that re-signs once when APNs reports an expired token."""

  def __init__(self, *, config: ApnsConfig, token_cache: ProviderTokenCache, client: httpx.AsyncClient) -> None:
    self._config = config
    self._token_cache = token_cache
    self._client = client
    self._retry_policy: RetryPolicy[_Attempt] = RetryPolicy(should_retry=_is_expired_token_response, prepare_retry=self._invalidate_token, max_retries=1)

  async def _invalidate_token(self, attempt: _Attempt) -> None:
    logger.info("APNs reported %s; re-signing provider token", EXPIRED_PROVIDER_TOKEN)
    self._token_cache.invalidate(attempt.token)

  def _headers(self, token: ProviderToken) -> dict[str, str]:
    return {"authorization": f"bearer {token.value}", "apns-topic": self._config.topic, "apns-push-type": "alert", "apns-priority": "10", "content-type": "application/json"}

  async def send(self, device_token: str, message: PushMessage) -> DeliveryResult:
    """Deliver one alert; network and per-device failures come back as failed results."""
    url = f"{self._config.base_url.rstrip('/')}/3/device/{device_token}"
    body = json.dumps(message.to_apns_payload()).encode("utf-8")

    async def _attempt() -> _Attempt:
      token = await self._token_cache.get_token()
      response = await self._client.post(url, content=body, headers=self._headers(token))
      return _Attempt(token=token, result=DeliveryResult(success=response.status_code == HTTPStatus.OK, status_code=response.status_code, raw_response=response.text))

    try:
      attempt = await self._retry_policy.run(operation_name="apns_send", attempt=_attempt)
    except ProviderConfigurationError:
      # Bad key material fails every device the same way; let the event fail.
      raise
    except TransientProviderError as exc:
      logger.warning("APNs token unavailable device=%s error=%s", short_token(device_token), exc)
      return DeliveryResult(success=False, status_code=None, raw_response=str(exc))
    except httpx.HTTPError as exc:
      logger.warning("APNs request failed device=%s error_type=%s error=%s", short_token(device_token), type(exc).__name__, exc)
      return DeliveryResult(success=False, status_code=None, raw_response=str(exc) or type(exc).__name__)

    return attempt.result


class UnconfiguredPushSender(PushSender):
  """Sender used when APNs settings are incomplete; every send is a configuration error."""

  def __init__(self, *, missing_keys: list[str]) -> None:
    self._missing_keys = missing_keys

  async def send(self, device_token: str, message: PushMessage) -> DeliveryResult:
    raise ProviderConfigurationError(f"Push delivery is not configured; missing {', '.join(self._missing_keys)}")
