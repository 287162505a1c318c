from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from app.core.security import require_internal_secret
from app.notifications.in_app_repo import InAppNotificationRepository

router = APIRouter(dependencies=[Depends(require_internal_secret)])


@router.get("/{user_id}/notifications")
async def list_notifications(user_id: uuid.UUID = Path(), limit: int = Query(50, ge=1, le=100)) -> dict[str, Any]:  # noqa: B008
  """
  Return the user's newest notifications and their unread count.

  - **limit**: Max number of notifications to return.
  """
  page = await InAppNotificationRepository().list_for_user(user_id=user_id, limit=limit)

  items = []
  for item in page.items:
    items.append(
      {
        "id": str(item.id),
        "user_id": str(user_id),
        "sender_id": str(item.sender_id),
        "type": item.type,
        "post_id": str(item.post_id) if item.post_id else None,
        "comment_id": str(item.comment_id) if item.comment_id else None,
        "title": item.title,
        "body": item.body,
        "is_read": item.is_read,
        "created_at": item.created_at.isoformat() if item.created_at else None,
      }
    )

  return {"items": items, "unreadCount": page.unread_count}


@router.post("/{user_id}/notifications/read-all")
async def mark_all_notifications_read(user_id: uuid.UUID = Path()) -> dict[str, int]:  # noqa: B008
  """Mark every unread notification for the user as read."""
  updated = await InAppNotificationRepository().mark_all_read(user_id=user_id)
  return {"updated": updated}


@router.post("/{user_id}/notifications/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notification_read(user_id: uuid.UUID = Path(), notification_id: uuid.UUID = Path()) -> None:  # noqa: B008
  """Mark one of the user's notifications as read."""
  updated = await InAppNotificationRepository().mark_read(user_id=user_id, notification_id=notification_id)
  if not updated:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
