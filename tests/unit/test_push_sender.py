from __future__ import annotations

import json
import uuid

import httpx
import pytest

from app.notifications.contracts import ApnsCredentials, NotificationType, ProviderConfigurationError, PushMessage
from app.notifications.provider_token import ProviderTokenCache
from app.notifications.push_sender import ApnsConfig, ApnsPushSender, UnconfiguredPushSender

POST_ID = uuid.UUID("6f1c2a52-6f0e-4a55-8f4e-1f6f1b2c3d4e")
COMMENT_ID = uuid.UUID("0b9d7d3e-2b5c-4c1e-9a8f-7e6d5c4b3a21")
DEVICE_TOKEN = "a1b2c3d4e5f6"


def _message(comment_id: uuid.UUID | None = None) -> PushMessage:
  notification_type = NotificationType.COMMENT if comment_id else NotificationType.LIKE
  return PushMessage(title="Ana liked your post", body="Tap to view your post", post_id=POST_ID, notification_type=notification_type, comment_id=comment_id)


def _token_cache(signer=None) -> ProviderTokenCache:
  calls = {"count": 0}

  def _signer(credentials, issued_at):
    calls["count"] += 1
    return f"token-{calls['count']}"

  credentials = ApnsCredentials(key_id="KEY1234567", team_id="TEAM123456", private_key_pem="unused")
  return ProviderTokenCache(credentials=credentials, signer=signer or _signer, clock=lambda: 1_000.0)


def _sender(handler, *, token_cache: ProviderTokenCache | None = None) -> tuple[ApnsPushSender, httpx.AsyncClient]:
  client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
  config = ApnsConfig(base_url="https://api.sandbox.push.apple.com", topic="com.example.social")
  return ApnsPushSender(config=config, token_cache=token_cache or _token_cache(), client=client), client


@pytest.mark.anyio
async def test_send_posts_expected_request():
  requests: list[httpx.Request] = []

  def _handler(request: httpx.Request) -> httpx.Response:
    requests.append(request)
    return httpx.Response(200)

  sender, client = _sender(_handler)
  async with client:
    result = await sender.send(DEVICE_TOKEN, _message(comment_id=COMMENT_ID))

  assert result.success is True
  assert result.status_code == 200
  request = requests[0]
  assert request.method == "POST"
  assert str(request.url) == f"https://api.sandbox.push.apple.com/3/device/{DEVICE_TOKEN}"
  assert request.headers["authorization"] == "bearer token-1"
  assert request.headers["apns-topic"] == "com.example.social"
  assert request.headers["apns-push-type"] == "alert"
  assert request.headers["apns-priority"] == "10"
  assert request.headers["content-type"] == "application/json"
  assert json.loads(request.content) == {
    "aps": {"alert": {"title": "Ana liked your post", "body": "Tap to view your post"}, "badge": 1, "sound": "default"},
    "post_id": str(POST_ID),
    "comment_id": str(COMMENT_ID),
    "notification_type": "comment",
  }


@pytest.mark.anyio
async def test_payload_omits_comment_id_when_absent():
  bodies: list[dict] = []

  def _handler(request: httpx.Request) -> httpx.Response:
    bodies.append(json.loads(request.content))
    return httpx.Response(200)

  sender, client = _sender(_handler)
  async with client:
    await sender.send(DEVICE_TOKEN, _message())

  assert "comment_id" not in bodies[0]
  assert bodies[0]["notification_type"] == "like"


@pytest.mark.anyio
async def test_expired_provider_token_retries_once_with_fresh_token():
  authorizations: list[str] = []

  def _handler(request: httpx.Request) -> httpx.Response:
    authorizations.append(request.headers["authorization"])
    if len(authorizations) == 1:
      return httpx.Response(403, json={"reason": "ExpiredProviderToken"})
    return httpx.Response(200)

  sender, client = _sender(_handler)
  async with client:
    result = await sender.send(DEVICE_TOKEN, _message())

  assert result.success is True
  assert authorizations == ["bearer token-1", "bearer token-2"]


@pytest.mark.anyio
async def test_expired_provider_token_retry_failure_is_reported():
  attempts = {"count": 0}

  def _handler(request: httpx.Request) -> httpx.Response:
    attempts["count"] += 1
    return httpx.Response(403, json={"reason": "ExpiredProviderToken"})

  sender, client = _sender(_handler)
  async with client:
    result = await sender.send(DEVICE_TOKEN, _message())

  assert attempts["count"] == 2
  assert result.success is False
  assert result.status_code == 403
  assert "ExpiredProviderToken" in result.raw_response


@pytest.mark.anyio
@pytest.mark.parametrize(("status_code", "reason"), [(410, "Unregistered"), (400, "BadDeviceToken"), (403, "InvalidProviderToken")])
async def test_other_rejections_are_not_retried(status_code, reason):
  attempts = {"count": 0}

  def _handler(request: httpx.Request) -> httpx.Response:
    attempts["count"] += 1
    return httpx.Response(status_code, json={"reason": reason})

  sender, client = _sender(_handler)
  async with client:
    result = await sender.send(DEVICE_TOKEN, _message())

  assert attempts["count"] == 1
  assert result.success is False
  assert result.status_code == status_code
  assert reason in result.raw_response


@pytest.mark.anyio
async def test_network_errors_become_failed_results():
  def _handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  sender, client = _sender(_handler)
  async with client:
    result = await sender.send(DEVICE_TOKEN, _message())

  assert result.success is False
  assert result.status_code is None
  assert "connection refused" in result.raw_response


@pytest.mark.anyio
async def test_transient_token_failure_becomes_failed_result():
  def _broken_signer(credentials, issued_at):
    raise OSError("signing backend unavailable")

  def _handler(request: httpx.Request) -> httpx.Response:
    raise AssertionError("no request expected without a token")

  sender, client = _sender(_handler, token_cache=_token_cache(signer=_broken_signer))
  async with client:
    result = await sender.send(DEVICE_TOKEN, _message())

  assert result.success is False
  assert result.status_code is None


@pytest.mark.anyio
async def test_configuration_errors_propagate():
  def _bad_key_signer(credentials, issued_at):
    raise ProviderConfigurationError("APNs key is not a PKCS#8 PEM private key.")

  def _handler(request: httpx.Request) -> httpx.Response:
    raise AssertionError("no request expected without a token")

  sender, client = _sender(_handler, token_cache=_token_cache(signer=_bad_key_signer))
  async with client:
    with pytest.raises(ProviderConfigurationError):
      await sender.send(DEVICE_TOKEN, _message())


@pytest.mark.anyio
async def test_unconfigured_sender_reports_missing_keys():
  sender = UnconfiguredPushSender(missing_keys=["APNS_KEY_ID", "APNS_KEY_P8"])

  with pytest.raises(ProviderConfigurationError, match="APNS_KEY_ID, APNS_KEY_P8"):
    await sender.send(DEVICE_TOKEN, _message())
