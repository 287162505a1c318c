"""Routes for device token registration."""

from __future__ import annotations

import re
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from app.core.security import require_internal_secret
from app.notifications.device_token_repo import DeviceTokenEntry, DeviceTokenRepository

_DEVICE_TOKEN_RE = re.compile(r"^[A-Za-z0-9_:\-.]+$")

router = APIRouter(dependencies=[Depends(require_internal_secret)])


class DeviceRegistrationRequest(BaseModel):
  """Token reported by the mobile client after it obtains push permission."""

  device_token: str = Field(min_length=1, max_length=4096)
  platform: Literal["ios", "android"] = "ios"
  model_config = ConfigDict(extra="forbid")

  @field_validator("device_token")
  @classmethod
  def validate_device_token(cls, value: str) -> str:
    """Tokens are opaque but must be URL-safe because APNs addresses them by path."""
    normalized = value.strip()
    if not _DEVICE_TOKEN_RE.fullmatch(normalized):
      raise PydanticCustomError("device_token_format", "device_token contains unsupported characters.")

    return normalized


@router.put("/{user_id}/devices", status_code=status.HTTP_204_NO_CONTENT)
async def register_device(payload: DeviceRegistrationRequest, response: Response, user_id: uuid.UUID = Path()) -> Response:  # noqa: B008
  """Upsert a device token for the user, re-assigning it if another user held it."""
  try:
    await DeviceTokenRepository().upsert(DeviceTokenEntry(user_id=user_id, device_token=payload.device_token, platform=payload.platform))
  except Exception as exc:  # noqa: BLE001
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save device token") from exc

  response.status_code = status.HTTP_204_NO_CONTENT
  return response


@router.delete("/{user_id}/devices/{device_token}", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_device(response: Response, user_id: uuid.UUID = Path(), device_token: str = Path(min_length=1, max_length=4096)) -> Response:  # noqa: B008
  """Delete a device token owned by the user; repeated deletes succeed."""
  try:
    await DeviceTokenRepository().delete_for_user(user_id=user_id, device_token=device_token.strip())
  except Exception as exc:  # noqa: BLE001
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete device token") from exc

  response.status_code = status.HTTP_204_NO_CONTENT
  return response
