"""Contracts for event-triggered notification delivery."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class NotificationType(str, Enum):
  NEW_POST = "new_post"
  LIKE = "like"
  COMMENT = "comment"


@dataclass(frozen=True)
class ApnsCredentials:
  """Key material and identifiers used to sign provider tokens."""

  key_id: str
  team_id: str
  private_key_pem: str = field(repr=False)


@dataclass(frozen=True)
class ProviderToken:
  """A signed provider token and the unix time it was issued at."""

  value: str = field(repr=False)
  issued_at: int


@dataclass(frozen=True)
class PushMessage:
  """Alert content plus the custom fields the client uses to deep link."""

  title: str
  body: str
  post_id: uuid.UUID
  notification_type: NotificationType
  comment_id: uuid.UUID | None = None

  def to_apns_payload(self) -> dict[str, Any]:
    payload: dict[str, Any] = {"aps": {"alert": {"title": self.title, "body": self.body}, "badge": 1, "sound": "default"}, "post_id": str(self.post_id)}
    if self.comment_id is not None:
      payload["comment_id"] = str(self.comment_id)
    payload["notification_type"] = self.notification_type.value
    return payload


@dataclass(frozen=True)
class DeliveryResult:
  """Outcome of delivering one push message to one device."""

  success: bool
  status_code: int | None
  raw_response: str


@dataclass(frozen=True)
class DeviceEndpoint:
  """One registered push destination for a user."""

  user_id: uuid.UUID
  device_token: str
  platform: str = "ios"


@dataclass(frozen=True)
class NotificationEntry:
  """Capture a single in-app notification row before it is persisted."""

  user_id: uuid.UUID
  sender_id: uuid.UUID
  type: NotificationType
  post_id: uuid.UUID
  title: str
  body: str
  comment_id: uuid.UUID | None = None


class NotificationError(Exception):
  """Base class for all notification pipeline failures."""


class NotificationProviderError(NotificationError):
  """Exception raised when the push provider path fails."""


class ProviderConfigurationError(NotificationProviderError):
  """Key material or provider settings are missing or invalid; never retried."""


class TransientProviderError(NotificationProviderError):
  """Provider token could not be produced for a reason that may clear on its own."""


class InvalidEventError(NotificationError):
  """A change event is missing required fields or carries malformed values."""


class PushSender(Protocol):
  """Delivery contract for sending one push message to one device."""

  async def send(self, device_token: str, message: PushMessage) -> DeliveryResult:
    """Send a push message and report the provider outcome."""


class NotificationDataAccess(Protocol):
  """Query/insert facade over the relational store used by the handlers."""

  async def get_display_name(self, user_id: uuid.UUID) -> str | None: ...

  async def list_user_ids_except(self, user_id: uuid.UUID) -> list[uuid.UUID]: ...

  async def get_post_owner(self, post_id: uuid.UUID) -> uuid.UUID | None: ...

  async def insert_notification(self, entry: NotificationEntry) -> uuid.UUID: ...

  async def list_ios_devices(self, *, user_id: uuid.UUID | None = None, exclude_user_id: uuid.UUID | None = None) -> list[DeviceEndpoint]: ...

  async def commit(self) -> None: ...
