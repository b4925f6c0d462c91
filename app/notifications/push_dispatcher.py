"""Fan a push payload out to every browser a user has registered."""

from __future__ import annotations

import logging
from typing import Any

from starlette.concurrency import run_in_threadpool

from app.notifications.contracts import DeliveryReport, DeliveryResult, InvalidPushSubscriptionError, NotificationProviderError, PushNotification, PushSender
from app.notifications.push_subscription_repo import PushSubscriptionRepository

logger = logging.getLogger(__name__)


class PushDispatcher:
  """Deliver to each registration independently and prune endpoints the push service reports gone.

  Browser endpoints rotate and expire outside our control, so a 404/410 answer removes the
  registration. Every other failure is reported but the registration is kept for the next event.
  """

  def __init__(self, *, push_sender: PushSender | None, push_subscription_repo: PushSubscriptionRepository) -> None:
    self._push_sender = push_sender
    self._push_subscription_repo = push_subscription_repo

  @property
  def enabled(self) -> bool:
    return self._push_sender is not None

  async def deliver(self, user_id: int, payload: dict[str, Any]) -> DeliveryReport:
    """Send `payload` (title, body, data) to every endpoint of the user and return one result per endpoint.

    Without a sender push is switched off and the report is empty; nothing is attempted or pruned.
    """
    if self._push_sender is None:
      logger.debug("Push disabled; skipping delivery for user_id=%s", user_id)
      return []

    registrations = await self._push_subscription_repo.list_for_user(user_id)
    if not registrations:
      logger.debug("No push registrations for user_id=%s; nothing to deliver", user_id)
      return []

    title = str(payload.get("title") or "")
    body = str(payload.get("body") or "")
    data = {str(key): str(value) for key, value in (payload.get("data") or {}).items()}

    report: DeliveryReport = []
    gone_ids: list[int] = []
    for registration in registrations:
      notification = PushNotification(endpoint=registration.endpoint, p256dh=registration.p256dh, auth=registration.auth, title=title, body=body, data=data)
      try:
        await run_in_threadpool(self._push_sender.send, notification)
      except InvalidPushSubscriptionError as exc:
        logger.info("Pruning gone push endpoint user_id=%s registration_id=%s: %s", user_id, registration.id, exc)
        if registration.id is not None:
          gone_ids.append(registration.id)
        report.append(DeliveryResult(endpoint=registration.endpoint, status="failed", error=str(exc), pruned=True))
      except NotificationProviderError as exc:
        logger.error("Push notification delivery failed (provider error) user_id=%s: %s", user_id, exc)
        report.append(DeliveryResult(endpoint=registration.endpoint, status="failed", error=str(exc)))
      except Exception as exc:  # noqa: BLE001
        logger.error("Push notification delivery failed user_id=%s: %s", user_id, exc, exc_info=True)
        report.append(DeliveryResult(endpoint=registration.endpoint, status="failed", error=str(exc)))
      else:
        report.append(DeliveryResult(endpoint=registration.endpoint, status="sent"))

    if gone_ids:
      removed = await self._push_subscription_repo.remove_by_ids(gone_ids)
      logger.info("Removed %d gone push registrations for user_id=%s", removed, user_id)

    return report
