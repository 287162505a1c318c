"""SQLAlchemy model for registered mobile push destinations."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import CheckConstraint, DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class DeviceToken(Base):
  """Persist a single device push token for a user."""

  __tablename__ = "device_tokens"
  __table_args__ = (CheckConstraint("platform IN ('ios', 'android')", name="device_tokens_platform_check"),)

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
  device_token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
  platform: Mapped[str] = mapped_column(String(10), nullable=False, default="ios", server_default="ios")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
