"""Typed change events delivered by the database trigger transport."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.notifications.contracts import InvalidEventError
from app.utils.ids import parse_uuid


class ChangeOperation(str, Enum):
  INSERT = "INSERT"
  UPDATE = "UPDATE"
  DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
  """One committed row-level mutation."""

  operation: str
  table: str
  data: Mapping[str, Any]
  old_data: Mapping[str, Any] | None = None

  @classmethod
  def from_payload(cls, payload: Mapping[str, Any]) -> ChangeEvent:
    operation = str(payload.get("operation") or "")
    table = str(payload.get("table") or "")
    data = payload.get("data")
    old_data = payload.get("old_data")
    return cls(operation=operation, table=table, data=data if isinstance(data, Mapping) else {}, old_data=old_data if isinstance(old_data, Mapping) else None)


@dataclass(frozen=True)
class NewPostEvent:
  post_id: uuid.UUID
  author_id: uuid.UUID
  description: str | None


@dataclass(frozen=True)
class NewLikeEvent:
  like_id: uuid.UUID | None
  post_id: uuid.UUID
  liker_id: uuid.UUID


@dataclass(frozen=True)
class NewCommentEvent:
  comment_id: uuid.UUID
  post_id: uuid.UUID
  commenter_id: uuid.UUID
  content: str | None


@dataclass(frozen=True)
class UnhandledEvent:
  """An operation or table this pipeline deliberately ignores."""

  reason: str


NotificationEvent = NewPostEvent | NewLikeEvent | NewCommentEvent | UnhandledEvent


def _required_uuid(data: Mapping[str, Any], key: str, table: str) -> uuid.UUID:
  value = parse_uuid(data.get(key))
  if value is None:
    raise InvalidEventError(f"Invalid {table} payload: '{key}' is missing or not a UUID")
  return value


def _optional_text(data: Mapping[str, Any], key: str) -> str | None:
  value = data.get(key)
  return value if isinstance(value, str) else None


def _parse_post(data: Mapping[str, Any]) -> NewPostEvent:
  return NewPostEvent(post_id=_required_uuid(data, "id", "posts"), author_id=_required_uuid(data, "user_id", "posts"), description=_optional_text(data, "description"))


def _parse_like(data: Mapping[str, Any]) -> NewLikeEvent:
  return NewLikeEvent(like_id=parse_uuid(data.get("id")), post_id=_required_uuid(data, "post_id", "likes"), liker_id=_required_uuid(data, "user_id", "likes"))


def _parse_comment(data: Mapping[str, Any]) -> NewCommentEvent:
  return NewCommentEvent(comment_id=_required_uuid(data, "id", "comments"), post_id=_required_uuid(data, "post_id", "comments"), commenter_id=_required_uuid(data, "user_id", "comments"), content=_optional_text(data, "content"))


_PARSERS = {"posts": _parse_post, "likes": _parse_like, "comments": _parse_comment}


def classify_event(event: ChangeEvent) -> NotificationEvent:
  """Map a raw change event onto the closed set of notification events.

  Raises InvalidEventError when a known INSERT lacks required fields.
  """
  if event.operation != ChangeOperation.INSERT.value:
    return UnhandledEvent(reason=f"Skipping {event.operation or 'unknown operation'}")

  parser = _PARSERS.get(event.table)
  if parser is None:
    return UnhandledEvent(reason=f"Unknown table: {event.table}")

  return parser(event.data)
