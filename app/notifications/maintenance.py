"""Daily maintenance: purge expired notifications and emit subscription expiration reminders."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from app.notifications.events import SUBSCRIPTION_EXPIRATION
from app.notifications.notification_repo import NotificationRepository
from app.notifications.service import NotificationService
from app.services.directory import ExpiringSubscription, SubscriptionDirectory

logger = logging.getLogger(__name__)

REMINDER_OFFSETS: tuple[int, ...] = (1, 3, 5)


@dataclass
class MaintenanceReport:
  """What one maintenance run did; `failures` holds one line per isolated error."""

  purged: int = 0
  reminders_created: int = 0
  reminders_skipped: int = 0
  failures: list[str] = field(default_factory=list)


def day_bucket(now: datetime.datetime, days: int, tz: ZoneInfo) -> tuple[datetime.datetime, datetime.datetime]:
  """Return the UTC bounds of the local calendar day `days` after `now`'s local day."""
  if now.tzinfo is None:
    now = now.replace(tzinfo=datetime.UTC)
  target = now.astimezone(tz).date() + datetime.timedelta(days=days)
  start = datetime.datetime.combine(target, datetime.time.min, tzinfo=tz)
  end = datetime.datetime.combine(target, datetime.time.max, tzinfo=tz)
  return start.astimezone(datetime.UTC), end.astimezone(datetime.UTC)


class ExpirationScanner:
  """Run the purge and the reminder scan as two independent duties.

  Safe to run more than once per day: reminders are keyed by `(subscription_id, days_left)` so a
  re-run only creates what an earlier run missed.
  """

  def __init__(
    self, *, notification_repo: NotificationRepository, subscription_directory: SubscriptionDirectory, notification_service: NotificationService, timezone: str = "UTC", offsets: Sequence[int] = REMINDER_OFFSETS
  ) -> None:
    self._notification_repo = notification_repo
    self._subscription_directory = subscription_directory
    self._notification_service = notification_service
    self._tz = ZoneInfo(timezone)
    self._offsets = tuple(offsets)

  async def run_daily_maintenance(self, now: datetime.datetime | None = None) -> MaintenanceReport:
    now = now or datetime.datetime.now(datetime.UTC)
    report = MaintenanceReport()

    try:
      report.purged = await self._notification_repo.delete_expired(now)
    except Exception as exc:  # noqa: BLE001
      # A failed purge must not cost users their reminders.
      logger.error("Expired notification purge failed: %s", exc, exc_info=True)
      report.failures.append(f"purge: {exc}")

    for days_left in self._offsets:
      start, end = day_bucket(now, days_left, self._tz)
      try:
        subscriptions = await self._subscription_directory.list_active_ending_between(start, end)
      except Exception as exc:  # noqa: BLE001
        logger.error("Expiring subscription lookup failed days_left=%s: %s", days_left, exc, exc_info=True)
        report.failures.append(f"lookup days_left={days_left}: {exc}")
        continue

      logger.info("Found %d subscriptions expiring in %d day(s)", len(subscriptions), days_left)
      for subscription in subscriptions:
        await self._remind(subscription, days_left, now, report)

    logger.info("Daily maintenance finished purged=%d created=%d skipped=%d failures=%d", report.purged, report.reminders_created, report.reminders_skipped, len(report.failures))
    return report

  async def _remind(self, subscription: ExpiringSubscription, days_left: int, now: datetime.datetime, report: MaintenanceReport) -> None:
    try:
      existing = await self._notification_repo.find_existing(user_id=subscription.user_id, notification_type=SUBSCRIPTION_EXPIRATION, metadata_filter={"subscription_id": subscription.id, "days_left": days_left})
      if existing is not None:
        report.reminders_skipped += 1
        return

      plan_name = subscription.plan.name if subscription.plan is not None else None
      created = await self._notification_service.notify_subscription_expiration(user_id=subscription.user_id, subscription_id=subscription.id, plan_name=plan_name, days_left=days_left, now=now)
      # None means another run inserted the same reminder between our check and our write.
      if created is None:
        report.reminders_skipped += 1
      else:
        report.reminders_created += 1
    except Exception as exc:  # noqa: BLE001
      logger.error("Expiration reminder failed subscription_id=%s days_left=%s: %s", subscription.id, days_left, exc, exc_info=True)
      report.failures.append(f"subscription {subscription.id} days_left={days_left}: {exc}")
