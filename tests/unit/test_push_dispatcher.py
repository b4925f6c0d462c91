from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config import get_settings
from app.notifications.contracts import InvalidPushSubscriptionError, TransientPushProviderError
from app.notifications.factory import build_push_sender
from app.notifications.push_dispatcher import PushDispatcher
from app.notifications.push_subscription_repo import PushSubscriptionEntry, PushSubscriptionRepository

_P256DH = "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I"
_AUTH = "gq8Yh5xA9l2mQ6pR"
ENDPOINT_A = "https://fcm.googleapis.com/fcm/send/a"
ENDPOINT_B = "https://updates.push.services.mozilla.com/wpush/v2/b"
ENDPOINT_C = "https://web.push.apple.com/c"

_PAYLOAD = {"title": "2FA Enabled Successfully", "body": "Two-factor authentication has been activated.", "data": {"url": "/settings/security", "notification_id": 5}}


def _sender_failing(failures: dict[str, Exception]) -> MagicMock:
  sender = MagicMock()

  def _send(notification):
    error = failures.get(notification.endpoint)
    if error is not None:
      raise error

  sender.send.side_effect = _send
  return sender


@pytest.mark.anyio
async def test_gone_endpoint_is_pruned_and_others_are_sent(session_factory):
  repo = PushSubscriptionRepository(session_factory)
  await repo.add(PushSubscriptionEntry(user_id=7, endpoint=ENDPOINT_A, p256dh=_P256DH, auth=_AUTH))
  await repo.add(PushSubscriptionEntry(user_id=7, endpoint=ENDPOINT_B, p256dh=_P256DH, auth=_AUTH))

  dispatcher = PushDispatcher(push_sender=_sender_failing({ENDPOINT_A: InvalidPushSubscriptionError("gone")}), push_subscription_repo=repo)
  report = await dispatcher.deliver(7, _PAYLOAD)

  by_endpoint = {result.endpoint: result for result in report}
  assert by_endpoint[ENDPOINT_A].status == "failed"
  assert by_endpoint[ENDPOINT_A].pruned is True
  assert by_endpoint[ENDPOINT_B].status == "sent"
  assert by_endpoint[ENDPOINT_B].pruned is False

  remaining = await repo.list_for_user(7)
  assert [entry.endpoint for entry in remaining] == [ENDPOINT_B]


@pytest.mark.anyio
async def test_transient_failure_keeps_registration_and_continues(session_factory):
  repo = PushSubscriptionRepository(session_factory)
  for endpoint in (ENDPOINT_A, ENDPOINT_B, ENDPOINT_C):
    await repo.add(PushSubscriptionEntry(user_id=7, endpoint=endpoint, p256dh=_P256DH, auth=_AUTH))

  sender = _sender_failing({ENDPOINT_A: TransientPushProviderError("status=503"), ENDPOINT_B: RuntimeError("boom")})
  dispatcher = PushDispatcher(push_sender=sender, push_subscription_repo=repo)
  report = await dispatcher.deliver(7, _PAYLOAD)

  assert [result.status for result in report] == ["failed", "failed", "sent"]
  assert report[0].error == "status=503"
  assert not any(result.pruned for result in report)
  assert sender.send.call_count == 3
  assert len(await repo.list_for_user(7)) == 3


@pytest.mark.anyio
async def test_no_registrations_returns_empty_report():
  repo = AsyncMock()
  repo.list_for_user.return_value = []
  sender = MagicMock()

  report = await PushDispatcher(push_sender=sender, push_subscription_repo=repo).deliver(42, _PAYLOAD)

  assert report == []
  sender.send.assert_not_called()
  repo.remove_by_ids.assert_not_awaited()


@pytest.mark.anyio
async def test_gone_endpoints_removed_in_one_batch():
  repo = AsyncMock()
  repo.list_for_user.return_value = [
    PushSubscriptionEntry(id=1, user_id=7, endpoint=ENDPOINT_A, p256dh=_P256DH, auth=_AUTH),
    PushSubscriptionEntry(id=2, user_id=7, endpoint=ENDPOINT_B, p256dh=_P256DH, auth=_AUTH),
  ]
  repo.remove_by_ids.return_value = 2
  sender = _sender_failing({ENDPOINT_A: InvalidPushSubscriptionError("410"), ENDPOINT_B: InvalidPushSubscriptionError("404")})

  await PushDispatcher(push_sender=sender, push_subscription_repo=repo).deliver(7, _PAYLOAD)

  repo.remove_by_ids.assert_awaited_once_with([1, 2])


@pytest.mark.anyio
async def test_payload_data_is_stringified():
  repo = AsyncMock()
  repo.list_for_user.return_value = [PushSubscriptionEntry(id=1, user_id=7, endpoint=ENDPOINT_A, p256dh=_P256DH, auth=_AUTH)]
  sender = MagicMock()

  await PushDispatcher(push_sender=sender, push_subscription_repo=repo).deliver(7, _PAYLOAD)

  notification = sender.send.call_args.args[0]
  assert notification.title == "2FA Enabled Successfully"
  assert notification.data == {"url": "/settings/security", "notification_id": "5"}


@pytest.mark.anyio
async def test_disabled_push_reports_nothing_and_keeps_registrations(session_factory):
  repo = PushSubscriptionRepository(session_factory)
  await repo.add(PushSubscriptionEntry(user_id=7, endpoint=ENDPOINT_A, p256dh=_P256DH, auth=_AUTH))
  settings = replace(get_settings(), push_notifications_enabled=False)

  dispatcher = PushDispatcher(push_sender=build_push_sender(settings), push_subscription_repo=repo)

  assert dispatcher.enabled is False
  assert await dispatcher.deliver(7, _PAYLOAD) == []
  assert [entry.endpoint for entry in await repo.list_for_user(7)] == [ENDPOINT_A]
