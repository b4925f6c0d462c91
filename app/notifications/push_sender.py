"""VAPID-signed Web Push delivery to a single browser endpoint.

The sender classifies each push service answer so the dispatcher can act on it:

- 404/410 means the browser dropped the registration; raise `InvalidPushSubscriptionError` so it is pruned.
- 5xx is retried after each delay in `backoff_seconds`, then surfaces as `TransientPushProviderError`.
- Other 4xx answers and network failures (timeouts, resets) are transient and never retried.

There is no disabled-mode sender: when push is off the dispatcher is built without one and
reports nothing, so a report never claims a delivery that did not happen.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from http import HTTPStatus

from pywebpush import WebPushException, webpush

from app.notifications.contracts import InvalidPushSubscriptionError, PushNotification, PushSender, TransientPushProviderError

logger = logging.getLogger(__name__)

_GONE_STATUSES = frozenset({HTTPStatus.GONE, HTTPStatus.NOT_FOUND})


@dataclass(frozen=True)
class VapidConfig:
  """Application server keys and the contact claim sent to push services."""

  public_key: str
  private_key: str
  sub: str


class WebPushSender(PushSender):
  """Blocking `pywebpush` sender; the dispatcher runs it in a worker thread."""

  def __init__(self, *, vapid_config: VapidConfig, timeout_seconds: float = 10.0, backoff_seconds: tuple[float, ...] = (0.5, 1.0)) -> None:
    self._vapid_config = vapid_config
    self._timeout_seconds = timeout_seconds
    self._backoff_seconds = backoff_seconds

  def send(self, notification: PushNotification) -> None:
    body = json.dumps({"title": notification.title, "body": notification.body, "data": notification.data})
    subscription_info = {"endpoint": notification.endpoint, "keys": {"p256dh": notification.p256dh, "auth": notification.auth}}
    delays = list(self._backoff_seconds)

    while True:
      try:
        webpush(subscription_info=subscription_info, data=body, vapid_private_key=self._vapid_config.private_key, vapid_claims={"sub": self._vapid_config.sub}, timeout=self._timeout_seconds)
        return
      except WebPushException as exc:
        status_code = _response_status(exc)
        if status_code in _GONE_STATUSES:
          raise InvalidPushSubscriptionError(f"Push subscription is gone (status={status_code})") from exc
        if status_code is not None and status_code >= 500 and delays:
          delay = delays.pop(0)
          logger.debug("Push service answered %s; retrying in %.1fs", status_code, delay)
          time.sleep(delay)
          continue
        raise TransientPushProviderError(f"Push delivery failed (status={status_code or 'unknown'})") from exc
      except OSError as exc:
        # requests raises OSError subclasses for timeouts and dropped connections.
        raise TransientPushProviderError(f"Push delivery failed: {exc}") from exc


def _response_status(exc: WebPushException) -> int | None:
  status = getattr(getattr(exc, "response", None), "status_code", None)
  return status if isinstance(status, int) else None
