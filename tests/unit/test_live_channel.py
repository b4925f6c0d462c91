from __future__ import annotations

import datetime
import uuid
from types import SimpleNamespace

import pytest

from app.notifications.live_channel import NEW_NOTIFICATION, BroadcastChannel, ChannelRegistry, notification_event


class _Handle:
  def __init__(self, *, broken: bool = False) -> None:
    self.sent: list[dict] = []
    self.broken = broken

  async def send_json(self, data) -> None:
    if self.broken:
      raise RuntimeError("socket closed")
    self.sent.append(data)


@pytest.mark.anyio
async def test_send_reaches_every_handle_of_the_user():
  registry = ChannelRegistry()
  laptop, phone, other = _Handle(), _Handle(), _Handle()
  await registry.connect(1, laptop)
  await registry.connect(1, phone)
  await registry.connect(2, other)

  delivered = await registry.send_if_connected(1, {"type": NEW_NOTIFICATION})

  assert delivered is True
  assert laptop.sent == [{"type": NEW_NOTIFICATION}]
  assert phone.sent == [{"type": NEW_NOTIFICATION}]
  assert other.sent == []


@pytest.mark.anyio
async def test_offline_user_is_a_silent_no_op():
  assert await ChannelRegistry().send_if_connected(99, {"type": NEW_NOTIFICATION}) is False


@pytest.mark.anyio
async def test_broken_handle_is_dropped():
  registry = ChannelRegistry()
  healthy, broken = _Handle(), _Handle(broken=True)
  await registry.connect(1, healthy)
  await registry.connect(1, broken)

  assert await registry.send_if_connected(1, {"type": NEW_NOTIFICATION}) is True
  assert registry.connection_counts() == {1: 1}


@pytest.mark.anyio
async def test_disconnect_removes_empty_users():
  registry = ChannelRegistry()
  handle = _Handle()
  await registry.connect(3, handle)
  await registry.disconnect(3, handle)
  await registry.disconnect(3, handle)

  assert registry.connection_counts() == {}


@pytest.mark.anyio
async def test_broadcast_adds_timestamp_and_never_raises():
  registry = ChannelRegistry()
  handle = _Handle()
  await registry.connect(1, handle)

  assert await BroadcastChannel(registry).send(1, {"type": "NOTIFICATION_READ", "notificationId": "n-1"}) is True
  event = handle.sent[0]
  assert event["type"] == "NOTIFICATION_READ"
  assert datetime.datetime.fromisoformat(event["timestamp"]).tzinfo is not None


@pytest.mark.anyio
async def test_broadcast_without_registry_is_a_no_op():
  assert await BroadcastChannel().send(1, {"type": NEW_NOTIFICATION}) is False


@pytest.mark.anyio
async def test_broadcast_swallows_registry_errors():
  class _ExplodingRegistry(ChannelRegistry):
    async def send_if_connected(self, user_id, payload):
      raise RuntimeError("registry corrupted")

  assert await BroadcastChannel(_ExplodingRegistry()).send(1, {"type": NEW_NOTIFICATION}) is False


def test_notification_event_carries_renderable_fields():
  notification = SimpleNamespace(
    id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
    title="New view on your VCard",
    message="Ada viewed your Work VCard",
    type="vcard_view",
    is_read=False,
    metadata_json={"event": "vcard_view", "vcardId": 9},
    created_at=datetime.datetime(2026, 1, 2, 3, 4, 5, tzinfo=datetime.UTC),
  )

  event = notification_event(NEW_NOTIFICATION, notification)

  assert event == {
    "type": NEW_NOTIFICATION,
    "notification": {
      "id": "00000000-0000-0000-0000-000000000001",
      "title": "New view on your VCard",
      "message": "Ada viewed your Work VCard",
      "type": "vcard_view",
      "isRead": False,
      "metadata": {"event": "vcard_view", "vcardId": 9},
      "createdAt": "2026-01-02T03:04:05+00:00",
    },
  }
