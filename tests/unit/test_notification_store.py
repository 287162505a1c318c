from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.notifications.contracts import DeviceEndpoint, NotificationEntry, NotificationType
from app.notifications.store import SqlNotificationStore, format_display_name
from app.schema.notifications import Notification


def _session(result: MagicMock | None = None) -> MagicMock:
  session = MagicMock()
  session.execute = AsyncMock(return_value=result or MagicMock())
  session.commit = AsyncMock()
  return session


@pytest.mark.parametrize(
  ("first_name", "last_name", "expected"),
  [("Ana", "Lopez", "Ana Lopez"), ("Ana", None, "Ana"), ("Ana", "  ", "Ana"), (None, "Lopez", None), ("", "", None)],
)
def test_format_display_name(first_name, last_name, expected):
  assert format_display_name(first_name, last_name) == expected


@pytest.mark.anyio
async def test_get_display_name_joins_first_and_last_name():
  result = MagicMock()
  result.first.return_value = SimpleNamespace(first_name="Ana", last_name="Lopez")
  store = SqlNotificationStore(_session(result))

  assert await store.get_display_name(uuid.uuid4()) == "Ana Lopez"


@pytest.mark.anyio
async def test_get_display_name_for_unknown_user():
  result = MagicMock()
  result.first.return_value = None
  store = SqlNotificationStore(_session(result))

  assert await store.get_display_name(uuid.uuid4()) is None


@pytest.mark.anyio
async def test_insert_notification_adds_row_inside_savepoint():
  session = _session()
  store = SqlNotificationStore(session)
  entry = NotificationEntry(user_id=uuid.uuid4(), sender_id=uuid.uuid4(), type=NotificationType.COMMENT, post_id=uuid.uuid4(), comment_id=uuid.uuid4(), title="Ana commented on your post", body="Nice!")

  await store.insert_notification(entry)

  session.begin_nested.assert_called_once()
  record = session.add.call_args.args[0]
  assert isinstance(record, Notification)
  assert (record.user_id, record.sender_id, record.type) == (entry.user_id, entry.sender_id, "comment")
  assert (record.post_id, record.comment_id) == (entry.post_id, entry.comment_id)
  assert record.is_read is False


@pytest.mark.anyio
async def test_list_ios_devices_maps_rows():
  user_id = uuid.uuid4()
  result = MagicMock()
  result.all.return_value = [SimpleNamespace(user_id=user_id, device_token="abc123")]
  session = _session(result)
  store = SqlNotificationStore(session)

  devices = await store.list_ios_devices(user_id=user_id)

  assert devices == [DeviceEndpoint(user_id=user_id, device_token="abc123", platform="ios")]
  statement = str(session.execute.await_args.args[0])
  assert "device_tokens.platform" in statement
  assert "device_tokens.user_id = " in statement


@pytest.mark.anyio
async def test_commit_delegates_to_session():
  session = _session()

  await SqlNotificationStore(session).commit()

  session.commit.assert_awaited_once()
