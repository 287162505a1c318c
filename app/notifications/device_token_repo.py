"""Repository helpers for device token registration."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import delete, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import require_session_factory
from app.schema.device_tokens import DeviceToken


@dataclass(frozen=True)
class DeviceTokenEntry:
  """Capture a single device registration for storage."""

  user_id: uuid.UUID
  device_token: str
  platform: str


class DeviceTokenRepository:
  """Persist and remove device tokens in Postgres."""

  async def upsert(self, entry: DeviceTokenEntry) -> None:
    """Insert or re-assign a token keyed by its value."""
    session_factory = require_session_factory()
    async with session_factory() as session:
      await self._upsert_with_session(session=session, entry=entry)

  async def _upsert_with_session(self, *, session: AsyncSession, entry: DeviceTokenEntry) -> None:
    # A token belongs to whoever signed in on the device most recently.
    stmt = insert(DeviceToken).values(user_id=entry.user_id, device_token=entry.device_token, platform=entry.platform)
    stmt = stmt.on_conflict_do_update(index_elements=["device_token"], set_={"user_id": entry.user_id, "platform": entry.platform, "updated_at": func.now()})
    await session.execute(stmt)
    await session.commit()

  async def delete_for_user(self, *, user_id: uuid.UUID, device_token: str) -> None:
    """Delete a token owned by the given user; missing rows are not an error."""
    session_factory = require_session_factory()
    async with session_factory() as session:
      await self._delete_for_user_with_session(session=session, user_id=user_id, device_token=device_token)

  async def _delete_for_user_with_session(self, *, session: AsyncSession, user_id: uuid.UUID, device_token: str) -> None:
    stmt = delete(DeviceToken).where(DeviceToken.user_id == user_id, DeviceToken.device_token == device_token)
    await session.execute(stmt)
    await session.commit()
