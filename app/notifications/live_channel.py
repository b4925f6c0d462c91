"""In-process live channel used to push notification events to connected clients."""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Any

from app.notifications.contracts import LiveSendHandle

logger = logging.getLogger(__name__)

NEW_NOTIFICATION = "NEW_NOTIFICATION"
NOTIFICATION_READ = "NOTIFICATION_READ"
ALL_NOTIFICATIONS_READ = "ALL_NOTIFICATIONS_READ"
NOTIFICATION_DELETED = "NOTIFICATION_DELETED"


class ChannelRegistry:
  """Map each user id to the live connections currently open for that user."""

  def __init__(self) -> None:
    self._connections: dict[int, set[LiveSendHandle]] = {}
    self._lock = asyncio.Lock()

  async def connect(self, user_id: int, handle: LiveSendHandle) -> None:
    async with self._lock:
      self._connections.setdefault(user_id, set()).add(handle)
    logger.debug("Live channel connected user_id=%s connections=%d", user_id, len(self._connections.get(user_id, ())))

  async def disconnect(self, user_id: int, handle: LiveSendHandle) -> None:
    async with self._lock:
      handles = self._connections.get(user_id)
      if handles is None:
        return
      handles.discard(handle)
      if not handles:
        del self._connections[user_id]

  async def send_if_connected(self, user_id: int, payload: dict[str, Any]) -> bool:
    """Send to every open handle of the user; returns False when the user has none."""
    async with self._lock:
      handles = list(self._connections.get(user_id, ()))
    if not handles:
      return False

    delivered = False
    for handle in handles:
      try:
        await handle.send_json(payload)
        delivered = True
      except Exception as exc:  # noqa: BLE001
        # A handle that cannot be written to is closed from our point of view.
        logger.warning("Dropping broken live connection user_id=%s: %s", user_id, exc)
        await self.disconnect(user_id, handle)
    return delivered

  def connection_counts(self) -> dict[int, int]:
    return {user_id: len(handles) for user_id, handles in self._connections.items()}


class BroadcastChannel:
  """Best-effort sender on top of an optional registry; never raises into the caller."""

  def __init__(self, registry: ChannelRegistry | None = None) -> None:
    self._registry = registry

  async def send(self, user_id: int, payload: dict[str, Any]) -> bool:
    if self._registry is None:
      return False
    event = {**payload, "timestamp": datetime.datetime.now(datetime.UTC).isoformat()}
    try:
      return await self._registry.send_if_connected(user_id, event)
    except Exception as exc:  # noqa: BLE001
      logger.error("Live broadcast failed user_id=%s type=%s: %s", user_id, payload.get("type"), exc, exc_info=True)
      return False


def notification_event(event_type: str, notification: Any) -> dict[str, Any]:
  """Build a payload carrying enough of the notification to render without a refetch."""
  created_at = getattr(notification, "created_at", None)
  return {
    "type": event_type,
    "notification": {
      "id": str(notification.id),
      "title": notification.title,
      "message": notification.message,
      "type": notification.type,
      "isRead": bool(notification.is_read),
      "metadata": notification.metadata_json,
      "createdAt": created_at.isoformat() if created_at else None,
    },
  }
