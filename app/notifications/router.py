"""Entry point for database change events."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from contextlib import AbstractAsyncContextManager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.notifications.contracts import InvalidEventError, NotificationDataAccess, PushSender
from app.notifications.events import ChangeEvent, UnhandledEvent, classify_event
from app.notifications.handlers import HandlerResult, NotificationHandlers
from app.notifications.store import SqlNotificationStore
from app.utils.ids import generate_execution_id

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]
StoreFactory = Callable[[AsyncSession], NotificationDataAccess]


class EventRouter:
  """Validate a change event, open a scoped session, and dispatch to a handler.

  The router is the outermost recovery boundary: every failure is logged with
  the execution id and returned as `{success: false, error}`.
  """

  def __init__(self, *, session_factory: SessionFactory | None, push_sender: PushSender, max_push_concurrency: int = 10, store_factory: StoreFactory = SqlNotificationStore) -> None:
    self._session_factory = session_factory
    self._push_sender = push_sender
    self._max_push_concurrency = max_push_concurrency
    self._store_factory = store_factory

  async def handle(self, payload: Mapping[str, Any]) -> HandlerResult:
    execution_id = generate_execution_id()
    logger.info("[%s] Notification handler", execution_id)

    try:
      if not isinstance(payload, Mapping):
        raise InvalidEventError("Change event must be a JSON object")

      event = ChangeEvent.from_payload(payload)
      logger.info("[%s] Database trigger: %s on %s", execution_id, event.operation, event.table)

      notification_event = classify_event(event)
      if isinstance(notification_event, UnhandledEvent):
        return HandlerResult(success=True, skipped=True, message=notification_event.reason)

      if self._session_factory is None:
        raise RuntimeError("Database connection is not configured (SOCIAL_PG_DSN is missing).")

      # The session is closed on every exit path, rolling back anything uncommitted.
      async with self._session_factory() as session:
        handlers = NotificationHandlers(store=self._store_factory(session), push_sender=self._push_sender, execution_id=execution_id, max_push_concurrency=self._max_push_concurrency)
        return await handlers.handle(notification_event)

    except InvalidEventError as exc:
      logger.warning("[%s] Rejected change event: %s", execution_id, exc)
      return HandlerResult(success=True, skipped=True, error=str(exc))

    except Exception as exc:  # noqa: BLE001
      logger.error("[%s] Error: %s", execution_id, exc, exc_info=True)
      return HandlerResult(success=False, error=str(exc) or type(exc).__name__)
