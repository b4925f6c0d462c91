"""Factory helpers for notification services."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.notifications.contracts import PushSender
from app.notifications.live_channel import BroadcastChannel, ChannelRegistry
from app.notifications.maintenance import ExpirationScanner
from app.notifications.notification_repo import NotificationRepository
from app.notifications.push_dispatcher import PushDispatcher
from app.notifications.push_sender import VapidConfig, WebPushSender
from app.notifications.push_subscription_repo import PushSubscriptionRepository
from app.notifications.scheduler import MaintenanceScheduler
from app.notifications.service import NotificationService
from app.services.directory import SubscriptionDirectory, UserDirectory


def build_push_sender(settings: Settings) -> PushSender | None:
  """Use real Web Push only when it is enabled and fully configured; None switches push off."""
  if settings.push_notifications_enabled and settings.push_vapid_public_key and settings.push_vapid_private_key and settings.push_vapid_sub:
    vapid_config = VapidConfig(public_key=settings.push_vapid_public_key, private_key=settings.push_vapid_private_key, sub=settings.push_vapid_sub)
    return WebPushSender(vapid_config=vapid_config, timeout_seconds=settings.push_timeout_seconds)
  return None


def build_notification_service(
  settings: Settings, *, registry: ChannelRegistry | None = None, session_factory: async_sessionmaker[AsyncSession] | None = None, push_sender: PushSender | None = None
) -> NotificationService:
  """Construct a notification service based on environment configuration."""
  push_subscription_repo = PushSubscriptionRepository(session_factory)
  push_dispatcher = PushDispatcher(push_sender=push_sender if push_sender is not None else build_push_sender(settings), push_subscription_repo=push_subscription_repo)
  return NotificationService(
    notification_repo=NotificationRepository(session_factory), push_dispatcher=push_dispatcher, push_subscription_repo=push_subscription_repo, broadcast=BroadcastChannel(registry), user_directory=UserDirectory(session_factory)
  )


def build_expiration_scanner(settings: Settings, service: NotificationService, *, session_factory: async_sessionmaker[AsyncSession] | None = None) -> ExpirationScanner:
  return ExpirationScanner(notification_repo=NotificationRepository(session_factory), subscription_directory=SubscriptionDirectory(session_factory), notification_service=service, timezone=settings.scheduler_timezone)


def build_maintenance_scheduler(settings: Settings, scanner: ExpirationScanner) -> MaintenanceScheduler:
  return MaintenanceScheduler(scanner.run_daily_maintenance, hour=settings.maintenance_hour, minute=settings.maintenance_minute, timezone=settings.scheduler_timezone)
