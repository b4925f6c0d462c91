from __future__ import annotations

import json

import pytest

from app.notifications.contracts import InvalidPushSubscriptionError, PushNotification, TransientPushProviderError
from app.notifications.push_sender import VapidConfig, WebPushSender


class _FakeResponse:
  def __init__(self, status_code: int) -> None:
    self.status_code = status_code


class _FakeWebPushError(Exception):
  def __init__(self, status_code: int | None) -> None:
    super().__init__(f"status={status_code}")
    self.response = _FakeResponse(status_code) if status_code is not None else None


def _notification() -> PushNotification:
  return PushNotification(
    endpoint="https://fcm.googleapis.com/fcm/send/abc", p256dh="BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I", auth="gq8Yh5xA9l2mQ6pR", title="New view on your VCard", body="Ada viewed your Work VCard", data={"url": "/vcards/9"}
  )


def _sender() -> WebPushSender:
  return WebPushSender(vapid_config=VapidConfig(public_key="pub", private_key="priv", sub="mailto:ops@example.com"), timeout_seconds=3.0)


@pytest.fixture
def fake_webpush(monkeypatch):
  monkeypatch.setattr("app.notifications.push_sender.time.sleep", lambda _: None)
  monkeypatch.setattr("app.notifications.push_sender.WebPushException", _FakeWebPushError)

  def _install(behaviour):
    monkeypatch.setattr("app.notifications.push_sender.webpush", behaviour)

  return _install


@pytest.mark.parametrize("status_code", [404, 410])
def test_gone_endpoint_raises_invalid_subscription(fake_webpush, status_code):
  def _raise(**kwargs):
    raise _FakeWebPushError(status_code)

  fake_webpush(_raise)

  with pytest.raises(InvalidPushSubscriptionError):
    _sender().send(_notification())


def test_5xx_is_retried_then_reported_transient(fake_webpush):
  attempts = {"count": 0}

  def _raise_503(**kwargs):
    attempts["count"] += 1
    raise _FakeWebPushError(503)

  fake_webpush(_raise_503)

  with pytest.raises(TransientPushProviderError):
    _sender().send(_notification())

  assert attempts["count"] == 3


def test_5xx_then_success_returns_normally(fake_webpush):
  attempts = {"count": 0}

  def _flaky(**kwargs):
    attempts["count"] += 1
    if attempts["count"] == 1:
      raise _FakeWebPushError(502)

  fake_webpush(_flaky)
  _sender().send(_notification())

  assert attempts["count"] == 2


def test_4xx_other_than_gone_is_not_retried(fake_webpush):
  attempts = {"count": 0}

  def _raise_400(**kwargs):
    attempts["count"] += 1
    raise _FakeWebPushError(400)

  fake_webpush(_raise_400)

  with pytest.raises(TransientPushProviderError):
    _sender().send(_notification())

  assert attempts["count"] == 1


def test_network_error_is_transient(fake_webpush):
  def _timeout(**kwargs):
    raise TimeoutError("read timed out")

  fake_webpush(_timeout)

  with pytest.raises(TransientPushProviderError):
    _sender().send(_notification())


def test_success_sends_signed_payload_with_timeout(fake_webpush):
  call = {}

  def _capture(**kwargs):
    call.update(kwargs)

  fake_webpush(_capture)
  _sender().send(_notification())

  assert call["subscription_info"] == {"endpoint": "https://fcm.googleapis.com/fcm/send/abc", "keys": {"p256dh": _notification().p256dh, "auth": "gq8Yh5xA9l2mQ6pR"}}
  assert call["vapid_private_key"] == "priv"
  assert call["vapid_claims"] == {"sub": "mailto:ops@example.com"}
  assert call["timeout"] == 3.0
  payload = json.loads(call["data"])
  assert payload == {"title": "New view on your VCard", "body": "Ada viewed your Work VCard", "data": {"url": "/vcards/9"}}
