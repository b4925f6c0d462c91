"""Event definitions: what each trigger stores, how long it lives and whether it goes to push.

Metadata keys by notification type:

- welcome: event, welcome_date
- subscription_<status>: event, subscription_id, status
- subscription_expiration: event, subscription_id, days_left
- new_subscription: event, plan_name, start_date, end_date
- subscription_update: event, plan_name, start_date, end_date, total_amount
- security_update: event, enabled_at | disabled_at | changed_at
- vcard_view: event, vcardId, viewer, timestamp
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

VIEW_TTL_DAYS = 7
ACCOUNT_TTL_DAYS = 30
SECURITY_TTL_DAYS = 90

SUBSCRIPTION_EXPIRATION = "subscription_expiration"
SECURITY_UPDATE = "security_update"
VCARD_VIEW = "vcard_view"


@dataclass(frozen=True)
class EventSpec:
  """Everything needed to persist and fan out one notification."""

  type: str
  title: str
  message: str
  metadata: dict[str, Any] = field(default_factory=dict)
  ttl_days: int | None = ACCOUNT_TTL_DAYS
  push: bool = False
  dedupe_key: str | None = None
  url: str = "/"

  def expires_at(self, now: datetime.datetime) -> datetime.datetime | None:
    if self.ttl_days is None:
      return None
    return now + datetime.timedelta(days=self.ttl_days)


def _iso_now() -> str:
  return datetime.datetime.now(datetime.UTC).isoformat()


def welcome(user_name: str) -> EventSpec:
  return EventSpec(
    type="welcome",
    title="Welcome to Our Platform!",
    message=f"Hello {user_name}, welcome to our community! We're thrilled to have you with us.",
    metadata={"event": "user_registration", "welcome_date": _iso_now()},
  )


def subscription_status(subscription_id: int, status: str) -> EventSpec:
  if status == "canceled":
    title, message = "Subscription Canceled", "Your subscription has been successfully canceled."
  elif status == "expired":
    title, message = "Subscription Expired", "Your subscription has expired. Please renew to continue enjoying our services."
  else:
    title, message = "Subscription Update", f"Your subscription status has been updated to: {status}."
  return EventSpec(type=f"subscription_{status}", title=title, message=message, metadata={"event": f"subscription_{status}", "subscription_id": subscription_id, "status": status})


def expiration_dedupe_key(subscription_id: int, days_left: int) -> str:
  return f"{subscription_id}:{days_left}"


def subscription_expiration(subscription_id: int, plan_name: str | None, days_left: int) -> EventSpec:
  """Reminder emitted by the daily scan; at most one per (subscription, days_left)."""
  plan_label = f"{plan_name} " if plan_name else ""
  return EventSpec(
    type=SUBSCRIPTION_EXPIRATION,
    title="Subscription Expiration Reminder",
    message=f"Your {plan_label}subscription expires in {days_left} day(s). Renew now to continue enjoying our services.",
    metadata={"event": SUBSCRIPTION_EXPIRATION, "subscription_id": subscription_id, "days_left": days_left},
    ttl_days=VIEW_TTL_DAYS,
    dedupe_key=expiration_dedupe_key(subscription_id, days_left),
  )


def new_subscription(plan_name: str, start_date: datetime.date, end_date: datetime.date) -> EventSpec:
  return EventSpec(
    type="new_subscription",
    title="New Subscription Activated",
    message=f"Your {plan_name} subscription has been activated! Valid from {start_date:%a %b %d %Y} to {end_date:%a %b %d %Y}.",
    metadata={"event": "subscription_activated", "plan_name": plan_name, "start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
  )


def _amount_text(amount: float | Decimal) -> str:
  # Amounts print as given; whole numbers drop the ".0" a float would add.
  if isinstance(amount, float) and amount.is_integer():
    return str(int(amount))
  return str(amount)


def subscription_update(plan_name: str, start_date: datetime.date, end_date: datetime.date, total_amount: float | Decimal) -> EventSpec:
  return EventSpec(
    type="subscription_update",
    title="Subscription Update",
    message=f"New total amount: ${_amount_text(total_amount)} for {plan_name} until {end_date:%Y-%m-%d}",
    metadata={"event": "subscription_update", "plan_name": plan_name, "start_date": start_date.isoformat(), "end_date": end_date.isoformat(), "total_amount": _amount_text(total_amount)},
  )


def two_factor_enabled(email: str) -> EventSpec:
  return EventSpec(
    type=SECURITY_UPDATE,
    title="2FA Enabled Successfully",
    message=f"Two-factor authentication has been activated for your account {email}.",
    metadata={"event": "two_factor_enabled", "enabled_at": _iso_now()},
    ttl_days=SECURITY_TTL_DAYS,
    push=True,
    url="/settings/security",
  )


def two_factor_disabled(email: str) -> EventSpec:
  return EventSpec(
    type=SECURITY_UPDATE,
    title="2FA Disabled Successfully",
    message=f"Two-factor authentication has been deactivated for your account {email}.",
    metadata={"event": "two_factor_disabled", "disabled_at": _iso_now()},
    ttl_days=SECURITY_TTL_DAYS,
    push=True,
    url="/settings/security",
  )


def password_changed(email: str) -> EventSpec:
  return EventSpec(
    type=SECURITY_UPDATE,
    title="Password Changed",
    message=f"The password for your account {email} was changed. If this wasn't you, reset it immediately.",
    metadata={"event": "password_changed", "changed_at": _iso_now()},
    ttl_days=SECURITY_TTL_DAYS,
    push=True,
    url="/settings/security",
  )


def vcard_view(viewer_name: str, vcard_id: int, vcard_name: str) -> EventSpec:
  return EventSpec(
    type=VCARD_VIEW,
    title="New view on your VCard",
    message=f"{viewer_name} viewed your {vcard_name} VCard",
    metadata={"event": VCARD_VIEW, "vcardId": vcard_id, "viewer": viewer_name, "timestamp": _iso_now()},
    ttl_days=VIEW_TTL_DAYS,
    push=True,
    url=f"/vcards/{vcard_id}",
  )
