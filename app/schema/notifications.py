"""SQLAlchemy model for in-app notifications."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Notification(Base):
  """Persist one in-app notification per (event, recipient)."""

  __tablename__ = "notifications"
  __table_args__ = (
    CheckConstraint("type IN ('like', 'comment', 'new_post')", name="notifications_type_check"),
    Index("idx_notifications_is_read", "user_id", "is_read"),
  )

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
  sender_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
  type: Mapped[str] = mapped_column(String(20), nullable=False)
  post_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=True)
  comment_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
