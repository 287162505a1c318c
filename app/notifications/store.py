"""Relational store access used by the notification handlers."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.notifications.contracts import DeviceEndpoint, NotificationDataAccess, NotificationEntry
from app.schema.sql import DeviceToken, Notification, Post, User

IOS_PLATFORM = "ios"


def format_display_name(first_name: str | None, last_name: str | None) -> str | None:
  """Join first and optional last name; None when there is no first name."""
  first = (first_name or "").strip()
  if not first:
    return None
  last = (last_name or "").strip()
  return f"{first} {last}" if last else first


class SqlNotificationStore(NotificationDataAccess):
  """Read lookups and notification inserts bound to one event's session."""

  def __init__(self, session: AsyncSession) -> None:
    self._session = session

  async def get_display_name(self, user_id: uuid.UUID) -> str | None:
    result = await self._session.execute(select(User.first_name, User.last_name).where(User.id == user_id))
    row = result.first()
    if row is None:
      return None
    return format_display_name(row.first_name, row.last_name)

  async def list_user_ids_except(self, user_id: uuid.UUID) -> list[uuid.UUID]:
    result = await self._session.execute(select(User.id).where(User.id != user_id))
    return list(result.scalars().all())

  async def get_post_owner(self, post_id: uuid.UUID) -> uuid.UUID | None:
    result = await self._session.execute(select(Post.user_id).where(Post.id == post_id))
    return result.scalar_one_or_none()

  async def insert_notification(self, entry: NotificationEntry) -> uuid.UUID:
    """Insert one row inside a savepoint so a failure leaves the event transaction usable."""
    record = Notification(user_id=entry.user_id, sender_id=entry.sender_id, type=entry.type.value, post_id=entry.post_id, comment_id=entry.comment_id, title=entry.title, body=entry.body, is_read=False)
    async with self._session.begin_nested():
      self._session.add(record)
    return record.id

  async def list_ios_devices(self, *, user_id: uuid.UUID | None = None, exclude_user_id: uuid.UUID | None = None) -> list[DeviceEndpoint]:
    stmt = select(DeviceToken.user_id, DeviceToken.device_token).where(DeviceToken.platform == IOS_PLATFORM)
    if user_id is not None:
      stmt = stmt.where(DeviceToken.user_id == user_id)
    if exclude_user_id is not None:
      stmt = stmt.where(DeviceToken.user_id != exclude_user_id)
    result = await self._session.execute(stmt)
    return [DeviceEndpoint(user_id=row.user_id, device_token=row.device_token, platform=IOS_PLATFORM) for row in result.all()]

  async def commit(self) -> None:
    await self._session.commit()
