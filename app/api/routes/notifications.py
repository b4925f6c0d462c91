from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user_id, get_notification_service
from app.notifications.service import NotificationService
from app.schema.notifications import Notification

router = APIRouter()


def _serialize(notification: Notification) -> dict[str, Any]:
  return {
    "id": str(notification.id),
    "userId": notification.user_id,
    "title": notification.title,
    "message": notification.message,
    "type": notification.type,
    "isRead": bool(notification.is_read),
    "metadata": notification.metadata_json,
    "expiresAt": notification.expires_at.isoformat() if notification.expires_at else None,
    "createdAt": notification.created_at.isoformat() if notification.created_at else None,
  }


@router.get("")
async def list_notifications(
  user_id: int = Depends(get_current_user_id),  # noqa: B008
  service: NotificationService = Depends(get_notification_service),  # noqa: B008
  limit: int = Query(10, ge=1, le=100),  # noqa: B008
  offset: int = Query(0, ge=0),  # noqa: B008
  unread_only: bool = Query(False, alias="unreadOnly"),  # noqa: B008
  notification_type: str | None = Query(None, alias="type", max_length=64),  # noqa: B008
) -> dict[str, Any]:
  """
  Return the caller's notifications, newest first.

  - **limit** / **offset**: page window.
  - **unreadOnly**: only unread rows.
  - **type**: only one notification type.

  `meta.totalUnread` always counts every unread notification regardless of filters.
  """
  page = await service.list_notifications(user_id, limit=limit, offset=offset, unread_only=unread_only, notification_type=notification_type)
  return {"success": True, "data": [_serialize(item) for item in page.items], "meta": {"totalUnread": page.total_unread, "limit": limit, "offset": offset}}


@router.patch("/read-all")
async def mark_all_notifications_read(user_id: int = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)) -> dict[str, Any]:  # noqa: B008
  marked = await service.mark_all_read(user_id)
  return {"success": True, "data": {"markedCount": marked}}


@router.patch("/{notification_id}/read")
async def mark_notification_read(notification_id: uuid.UUID, user_id: int = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)) -> dict[str, Any]:  # noqa: B008
  notification = await service.mark_read(user_id, notification_id)
  return {"success": True, "data": _serialize(notification)}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: uuid.UUID, user_id: int = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)) -> dict[str, Any]:  # noqa: B008
  await service.delete(user_id, notification_id)
  return {"success": True, "message": "Notification deleted successfully"}
