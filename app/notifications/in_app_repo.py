"""Repository helpers for reading and acknowledging in-app notifications."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import require_session_factory
from app.schema.notifications import Notification


@dataclass(frozen=True)
class InboxItem:
  """One notification row as shown to its recipient."""

  id: uuid.UUID
  sender_id: uuid.UUID
  type: str
  post_id: uuid.UUID | None
  comment_id: uuid.UUID | None
  title: str
  body: str
  is_read: bool
  created_at: datetime.datetime


@dataclass(frozen=True)
class InboxPage:
  items: list[InboxItem]
  unread_count: int


class InAppNotificationRepository:
  """Query and update a user's notification inbox."""

  async def list_for_user(self, *, user_id: uuid.UUID, limit: int) -> InboxPage:
    """Return the newest notifications and the user's total unread count."""
    session_factory = require_session_factory()
    async with session_factory() as session:
      return await self._list_for_user_with_session(session=session, user_id=user_id, limit=limit)

  async def _list_for_user_with_session(self, *, session: AsyncSession, user_id: uuid.UUID, limit: int) -> InboxPage:
    stmt = select(Notification).where(Notification.user_id == user_id).order_by(Notification.created_at.desc()).limit(limit)
    rows = (await session.execute(stmt)).scalars().all()
    unread_stmt = select(func.count()).select_from(Notification).where(Notification.user_id == user_id, Notification.is_read.is_(False))
    unread_count = int((await session.execute(unread_stmt)).scalar_one())
    items = [
      InboxItem(id=row.id, sender_id=row.sender_id, type=row.type, post_id=row.post_id, comment_id=row.comment_id, title=row.title, body=row.body, is_read=row.is_read, created_at=row.created_at) for row in rows
    ]
    return InboxPage(items=items, unread_count=unread_count)

  async def mark_read(self, *, user_id: uuid.UUID, notification_id: uuid.UUID) -> bool:
    """Mark one notification read; False when it does not belong to the user."""
    session_factory = require_session_factory()
    async with session_factory() as session:
      return await self._mark_read_with_session(session=session, user_id=user_id, notification_id=notification_id)

  async def _mark_read_with_session(self, *, session: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> bool:
    stmt = update(Notification).where(Notification.id == notification_id, Notification.user_id == user_id).values(is_read=True)
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0

  async def mark_all_read(self, *, user_id: uuid.UUID) -> int:
    """Mark every unread notification for the user read and return how many changed."""
    session_factory = require_session_factory()
    async with session_factory() as session:
      return await self._mark_all_read_with_session(session=session, user_id=user_id)

  async def _mark_all_read_with_session(self, *, session: AsyncSession, user_id: uuid.UUID) -> int:
    stmt = update(Notification).where(Notification.user_id == user_id, Notification.is_read.is_(False)).values(is_read=True)
    result = await session.execute(stmt)
    await session.commit()
    return int(result.rowcount or 0)
