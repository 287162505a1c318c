"""Per-event notification handlers: audience, records, then push fan-out."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from app.notifications.contracts import DeviceEndpoint, NotificationDataAccess, NotificationEntry, NotificationType, ProviderConfigurationError, PushMessage, PushSender
from app.notifications.events import NewCommentEvent, NewLikeEvent, NewPostEvent, NotificationEvent, UnhandledEvent
from app.notifications.push_sender import short_token

logger = logging.getLogger(__name__)

BODY_MAX_CHARS = 100
FALLBACK_ACTOR_NAME = "Someone"
NEW_POST_FALLBACK_BODY = "Check out their new post!"
LIKE_BODY = "Tap to view your post"
COMMENT_FALLBACK_BODY = "Tap to view the comment"


class HandlerResult(BaseModel):
  """Structured outcome returned to the trigger transport."""

  model_config = ConfigDict(populate_by_name=True)

  success: bool
  skipped: bool | None = None
  message: str | None = None
  type: NotificationType | None = None
  entries_created: int | None = Field(default=None, alias="entriesCreated")
  entry_created: bool | None = Field(default=None, alias="entryCreated")
  push_sent: int | None = Field(default=None, alias="pushSent")
  error: str | None = None

  def to_response(self) -> dict:
    return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def truncate_body(text: str | None, fallback: str) -> str:
  """Keep the first 100 characters of user content, or the fallback when empty."""
  if not text:
    return fallback
  return text[:BODY_MAX_CHARS]


class NotificationHandlers:
  """Handle one notification event against one store session."""

  def __init__(self, *, store: NotificationDataAccess, push_sender: PushSender, execution_id: str, max_push_concurrency: int = 10) -> None:
    self._store = store
    self._push_sender = push_sender
    self._execution_id = execution_id
    self._max_push_concurrency = max_push_concurrency

  async def handle(self, event: NotificationEvent) -> HandlerResult:
    if isinstance(event, NewPostEvent):
      return await self.handle_new_post(event)
    if isinstance(event, NewLikeEvent):
      return await self.handle_new_like(event)
    if isinstance(event, NewCommentEvent):
      return await self.handle_new_comment(event)
    if isinstance(event, UnhandledEvent):
      return HandlerResult(success=True, skipped=True, message=event.reason)
    raise TypeError(f"Unsupported notification event: {type(event).__name__}")

  async def _actor_name(self, user_id: uuid.UUID) -> str:
    return await self._store.get_display_name(user_id) or FALLBACK_ACTOR_NAME

  async def handle_new_post(self, event: NewPostEvent) -> HandlerResult:
    """Notify every other user of a new post; entries are written even without devices."""
    logger.info("[%s] New post %s by %s", self._execution_id, event.post_id, event.author_id)
    author_name = await self._actor_name(event.author_id)

    recipients = await self._store.list_user_ids_except(event.author_id)
    if not recipients:
      logger.info("[%s] No other users to notify", self._execution_id)
      return HandlerResult(success=True, type=NotificationType.NEW_POST, message="No other users", entries_created=0, push_sent=0)

    title = f"{author_name} posted"
    body = truncate_body(event.description, NEW_POST_FALLBACK_BODY)

    persisted: set[uuid.UUID] = set()
    last_error: Exception | None = None
    for user_id in recipients:
      entry = NotificationEntry(user_id=user_id, sender_id=event.author_id, type=NotificationType.NEW_POST, post_id=event.post_id, title=title, body=body)
      # A failed insert only drops that recipient; the others still get their entry.
      try:
        await self._store.insert_notification(entry)
      except Exception as exc:  # noqa: BLE001
        last_error = exc
        logger.error("[%s] Notification insert failed user_id=%s error=%s", self._execution_id, user_id, exc)
        continue
      persisted.add(user_id)

    if not persisted and last_error is not None:
      raise last_error

    # Devices are read in the same transaction; nothing after the commit touches the store.
    devices = [device for device in await self._store.list_ios_devices(exclude_user_id=event.author_id) if device.user_id in persisted]
    await self._store.commit()

    message = PushMessage(title=title, body=body, post_id=event.post_id, notification_type=NotificationType.NEW_POST)
    push_sent = await self._fan_out(devices, message)

    logger.info("[%s] Created %d notifications, sent %d push", self._execution_id, len(persisted), push_sent)
    return HandlerResult(success=True, type=NotificationType.NEW_POST, entries_created=len(persisted), push_sent=push_sent)

  async def handle_new_like(self, event: NewLikeEvent) -> HandlerResult:
    logger.info("[%s] New like on post %s by %s", self._execution_id, event.post_id, event.liker_id)
    return await self._notify_post_owner(
      post_id=event.post_id, actor_id=event.liker_id, notification_type=NotificationType.LIKE, self_action_message="User liked own post", title_suffix="liked your post", body=LIKE_BODY, comment_id=None
    )

  async def handle_new_comment(self, event: NewCommentEvent) -> HandlerResult:
    logger.info("[%s] New comment on post %s by %s", self._execution_id, event.post_id, event.commenter_id)
    return await self._notify_post_owner(
      post_id=event.post_id,
      actor_id=event.commenter_id,
      notification_type=NotificationType.COMMENT,
      self_action_message="User commented on own post",
      title_suffix="commented on your post",
      body=truncate_body(event.content, COMMENT_FALLBACK_BODY),
      comment_id=event.comment_id,
    )

  async def _notify_post_owner(self, *, post_id: uuid.UUID, actor_id: uuid.UUID, notification_type: NotificationType, self_action_message: str, title_suffix: str, body: str, comment_id: uuid.UUID | None) -> HandlerResult:
    """Write the owner's entry, then push to the owner's devices."""
    owner_id = await self._store.get_post_owner(post_id)
    if owner_id is None:
      # The post was deleted between the insert and this trigger.
      logger.info("[%s] Post %s not found", self._execution_id, post_id)
      return HandlerResult(success=True, skipped=True, message="Post not found")

    if owner_id == actor_id:
      logger.info("[%s] Skipping: %s", self._execution_id, self_action_message)
      return HandlerResult(success=True, skipped=True, message=self_action_message)

    title = f"{await self._actor_name(actor_id)} {title_suffix}"

    entry = NotificationEntry(user_id=owner_id, sender_id=actor_id, type=notification_type, post_id=post_id, comment_id=comment_id, title=title, body=body)
    await self._store.insert_notification(entry)
    devices = await self._store.list_ios_devices(user_id=owner_id)
    await self._store.commit()
    logger.info("[%s] Created notification entry for %s", self._execution_id, owner_id)

    message = PushMessage(title=title, body=body, post_id=post_id, notification_type=notification_type, comment_id=comment_id)
    push_sent = await self._fan_out(devices, message)

    logger.info("[%s] %s notification: entry created, %d push sent", self._execution_id, notification_type.value, push_sent)
    return HandlerResult(success=True, type=notification_type, entry_created=True, push_sent=push_sent)

  async def _fan_out(self, devices: Sequence[DeviceEndpoint], message: PushMessage) -> int:
    """Send to every device with bounded concurrency and count successes."""
    if not devices:
      logger.info("[%s] No devices registered for push", self._execution_id)
      return 0

    semaphore = asyncio.Semaphore(self._max_push_concurrency)

    async def _send(device: DeviceEndpoint):
      async with semaphore:
        return await self._push_sender.send(device.device_token, message)

    results = await asyncio.gather(*(_send(device) for device in devices), return_exceptions=True)

    push_sent = 0
    configuration_error: ProviderConfigurationError | None = None
    for device, result in zip(devices, results, strict=True):
      if isinstance(result, ProviderConfigurationError):
        configuration_error = configuration_error or result
        continue
      if isinstance(result, Exception):
        logger.warning("[%s] APNS send raised for user=%s device=%s error_type=%s error=%s", self._execution_id, device.user_id, short_token(device.device_token), type(result).__name__, result)
        continue
      if isinstance(result, BaseException):
        raise result
      if result.success:
        push_sent += 1
      else:
        logger.warning("[%s] APNS failed for user=%s device=%s: %s %s", self._execution_id, device.user_id, short_token(device.device_token), result.status_code, result.raw_response)

    # Sibling sends finish first; a broken key then fails the event.
    if configuration_error is not None:
      raise configuration_error

    return push_sent
