from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _bearer_value(authorization: str | None) -> str:
  scheme, _, value = (authorization or "").partition(" ")
  if scheme.lower() != "bearer":
    return ""
  return value.strip()


async def require_internal_secret(
  request: Request, settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_trigger_secret: str | None = Header(default=None)
) -> None:
  """Allow only callers holding the shared trigger secret (deny-by-default)."""
  if not settings.trigger_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Trigger authentication is not configured.")

  # Database trigger runtimes can usually only set a custom header, so accept either form.
  header_valid = secrets.compare_digest((x_trigger_secret or "").encode("utf-8"), settings.trigger_secret.encode("utf-8"))
  bearer_valid = secrets.compare_digest(_bearer_value(authorization).encode("utf-8"), settings.trigger_secret.encode("utf-8"))
  if not header_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to %s", request.url.path)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid trigger secret.")
