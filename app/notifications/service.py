"""Notification orchestration for account, subscription, security and vCard events."""

from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from collections.abc import Coroutine
from decimal import Decimal
from typing import Any

from app.notifications import events
from app.notifications.contracts import DeliveryReport, NotificationEntry, NotificationNotFoundError, NotificationPage, UserNotFoundError
from app.notifications.events import EventSpec
from app.notifications.live_channel import ALL_NOTIFICATIONS_READ, NEW_NOTIFICATION, NOTIFICATION_DELETED, NOTIFICATION_READ, BroadcastChannel, notification_event
from app.notifications.notification_repo import NotificationRepository
from app.notifications.push_dispatcher import PushDispatcher
from app.notifications.push_subscription_repo import PushSubscriptionEntry, PushSubscriptionRepository
from app.schema.notifications import Notification
from app.services.directory import UserDirectory, UserRecord

logger = logging.getLogger(__name__)


class NotificationService:
  """Persist notifications and fan them out to live connections and browser push.

  The write is the only step a caller waits for. Broadcast and push run as background tasks whose
  failures are logged, so a slow push service or a dropped socket never fails the triggering request.
  """

  def __init__(
    self, *, notification_repo: NotificationRepository, push_dispatcher: PushDispatcher, push_subscription_repo: PushSubscriptionRepository, broadcast: BroadcastChannel, user_directory: UserDirectory
  ) -> None:
    self._notification_repo = notification_repo
    self._push_dispatcher = push_dispatcher
    self._push_subscription_repo = push_subscription_repo
    self._broadcast = broadcast
    self._user_directory = user_directory
    self._tasks: set[asyncio.Task[Any]] = set()

  async def notify(self, user_id: int, spec: EventSpec, *, now: datetime.datetime | None = None) -> Notification:
    """Store a notification unconditionally, then schedule broadcast and (optionally) push."""
    record = await self._notification_repo.create(self._entry(user_id, spec, now))
    self._after_create(user_id, record, spec)
    return record

  async def notify_once(self, user_id: int, spec: EventSpec, *, now: datetime.datetime | None = None) -> Notification | None:
    """Store a notification keyed by `spec.dedupe_key`; returns None and skips side effects on a collision."""
    record = await self._notification_repo.create_if_absent(self._entry(user_id, spec, now))
    if record is None:
      return None
    self._after_create(user_id, record, spec)
    return record

  @staticmethod
  def _entry(user_id: int, spec: EventSpec, now: datetime.datetime | None) -> NotificationEntry:
    created = now or datetime.datetime.now(datetime.UTC)
    return NotificationEntry(user_id=user_id, title=spec.title, message=spec.message, type=spec.type, metadata=dict(spec.metadata), expires_at=spec.expires_at(created), dedupe_key=spec.dedupe_key)

  def _after_create(self, user_id: int, record: Notification, spec: EventSpec) -> None:
    self._schedule(self._broadcast.send(user_id, notification_event(NEW_NOTIFICATION, record)))
    if spec.push and self._push_dispatcher.enabled:
      payload = {"title": record.title, "body": record.message, "data": {"url": spec.url, "notification_id": str(record.id), "type": record.type}}
      self._schedule(self._deliver_push(user_id, payload))

  async def _deliver_push(self, user_id: int, payload: dict[str, Any]) -> None:
    try:
      report = await self._push_dispatcher.deliver(user_id, payload)
    except Exception as exc:  # noqa: BLE001
      logger.error("Push dispatch failed user_id=%s error=%s", user_id, exc, exc_info=True)
      return
    sent = sum(1 for result in report if result.status == "sent")
    logger.debug("Push dispatch finished user_id=%s sent=%d total=%d", user_id, sent, len(report))

  def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
    task = asyncio.create_task(coro)
    self._tasks.add(task)
    task.add_done_callback(self._tasks.discard)
    task.add_done_callback(self._log_task_error)

  @staticmethod
  def _log_task_error(task: asyncio.Task[Any]) -> None:
    """Log background task exceptions to avoid silent delivery failures."""
    if task.cancelled():
      return
    try:
      _ = task.result()
    except Exception as exc:  # noqa: BLE001
      logger.error("Background notification task failed: %s", exc, exc_info=True)

  async def drain(self) -> None:
    """Wait for every outstanding broadcast and push task."""
    while self._tasks:
      await asyncio.gather(*list(self._tasks), return_exceptions=True)

  async def _require_user(self, user_id: int) -> UserRecord:
    user = await self._user_directory.find_by_id(user_id)
    if user is None:
      raise UserNotFoundError(user_id)
    return user

  async def notify_welcome(self, *, user_id: int, user_name: str) -> Notification:
    return await self.notify(user_id, events.welcome(user_name))

  async def notify_subscription_status(self, *, user_id: int, subscription_id: int, status: str) -> Notification:
    return await self.notify(user_id, events.subscription_status(subscription_id, status))

  async def notify_subscription_expiration(self, *, user_id: int, subscription_id: int, plan_name: str | None, days_left: int, now: datetime.datetime | None = None) -> Notification | None:
    return await self.notify_once(user_id, events.subscription_expiration(subscription_id, plan_name, days_left), now=now)

  async def notify_new_subscription(self, *, user_id: int, plan_name: str, start_date: datetime.date, end_date: datetime.date) -> Notification:
    return await self.notify(user_id, events.new_subscription(plan_name, start_date, end_date))

  async def notify_subscription_update(self, *, user_id: int, plan_name: str, start_date: datetime.date, end_date: datetime.date, total_amount: float | Decimal) -> Notification:
    return await self.notify(user_id, events.subscription_update(plan_name, start_date, end_date, total_amount))

  async def notify_two_factor_enabled(self, *, user_id: int) -> Notification:
    # Resolve the account first; an unknown user must not leave a row behind.
    user = await self._require_user(user_id)
    return await self.notify(user_id, events.two_factor_enabled(user.email))

  async def notify_two_factor_disabled(self, *, user_id: int) -> Notification:
    user = await self._require_user(user_id)
    return await self.notify(user_id, events.two_factor_disabled(user.email))

  async def notify_password_changed(self, *, user_id: int) -> Notification:
    user = await self._require_user(user_id)
    return await self.notify(user_id, events.password_changed(user.email))

  async def notify_vcard_view(self, *, owner_user_id: int, viewer_name: str, vcard_id: int, vcard_name: str) -> Notification:
    """Tell a vCard owner someone viewed their card; anonymous viewers arrive as "Anonymous"."""
    return await self.notify(owner_user_id, events.vcard_view(viewer_name or "Anonymous", vcard_id, vcard_name))

  async def list_notifications(self, user_id: int, *, limit: int = 10, offset: int = 0, unread_only: bool = False, notification_type: str | None = None) -> NotificationPage:
    items, total_unread = await self._notification_repo.list_for_user(user_id, limit=limit, offset=offset, unread_only=unread_only, notification_type=notification_type)
    return NotificationPage(items=items, total_unread=total_unread)

  async def mark_read(self, user_id: int, notification_id: uuid.UUID) -> Notification:
    record = await self._notification_repo.mark_read(notification_id, user_id=user_id)
    if record is None:
      raise NotificationNotFoundError(notification_id)
    self._schedule(self._broadcast.send(user_id, {"type": NOTIFICATION_READ, "notificationId": str(record.id)}))
    return record

  async def mark_all_read(self, user_id: int) -> int:
    marked = await self._notification_repo.mark_all_read(user_id)
    self._schedule(self._broadcast.send(user_id, {"type": ALL_NOTIFICATIONS_READ, "userId": user_id}))
    return marked

  async def delete(self, user_id: int, notification_id: uuid.UUID) -> None:
    deleted = await self._notification_repo.delete(notification_id, user_id=user_id)
    if not deleted:
      raise NotificationNotFoundError(notification_id)
    self._schedule(self._broadcast.send(user_id, {"type": NOTIFICATION_DELETED, "notificationId": str(notification_id)}))

  async def send_push(self, user_id: int, *, title: str | None = None, body: str | None = None, url: str | None = None) -> DeliveryReport:
    """Push a message to every browser the user registered and wait for the per-endpoint results.

    Nothing is stored in-app. Gone endpoints are pruned as with event pushes; an empty report means
    push is off or the user has no registrations.
    """
    payload = {"title": title or "New Message", "body": body or "This is a new notification", "data": {"url": url or "/"}}
    report = await self._push_dispatcher.deliver(user_id, payload)
    logger.info("On-demand push user_id=%s sent=%d total=%d", user_id, sum(1 for result in report if result.status == "sent"), len(report))
    return report

  async def register_push(self, entry: PushSubscriptionEntry) -> None:
    await self._push_subscription_repo.add(entry)

  async def unregister_push(self, *, user_id: int, endpoint: str) -> int:
    return await self._push_subscription_repo.delete_for_user_endpoint(user_id=user_id, endpoint=endpoint)
