from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, status

from app.config import Settings, get_settings
from app.core.security import require_internal_secret
from app.notifications.factory import get_event_router

router = APIRouter(dependencies=[Depends(require_internal_secret)])


@router.post("/notifications", status_code=status.HTTP_200_OK)
async def handle_notification_trigger(payload: Annotated[dict[str, Any], Body()], settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, Any]:
  """
  Receive one change event (`operation`, `table`, `data`, `old_data`) from the database trigger.

  Always answers 200 with the handler result. A store failure reports `success: false`
  before anything is committed, so that event can be replayed. A push configuration
  error also reports `success: false`, but only after the entries were saved; fix the
  APNs settings instead of replaying those events.
  """
  result = await get_event_router(settings).handle(payload)
  return result.to_response()
